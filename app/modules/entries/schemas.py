from pydantic import BaseModel, Field
from typing import List, Optional


class EntryResponse(BaseModel):
    numbers: List[str] = Field(default_factory=list)
    paid_numbers_count: int = 0


class EntryCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    region: Optional[str] = None


class PaidPackRequest(BaseModel):
    userId: str = Field(min_length=1)


class PaidPackResponse(BaseModel):
    success: bool
    newNumbers: List[str]
