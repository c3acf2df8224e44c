from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, List


class PickLine(BaseModel):
    driver: str
    line: float
    betterOrWorse: str  # mejor | peor
    session_type: str = "race"  # qualy | race


class PickConfirmationRequest(BaseModel):
    to: str
    name: str = "Player"
    amount: float
    mode: str = "full"
    picks: List[PickLine] = Field(default_factory=list)
    orderId: Optional[str] = None


class NumbersConfirmationRequest(BaseModel):
    to: str
    name: str = "Usuario"
    numbers: List[str]
    context: str = "registro"  # registro | compra
    orderId: Optional[str] = None
    amount: Optional[float] = None


class CoinsConfirmationRequest(BaseModel):
    to: str
    amount: float
    mmc: int
    fc: int


class EmailSentResponse(BaseModel):
    status: str
    sent: bool


class PredictionEmailRequest(BaseModel):
    userEmail: str = Field(min_length=3)
    userName: str = Field(min_length=1)
    gpName: str = Field(min_length=1)
    predictions: Dict[str, Any]
