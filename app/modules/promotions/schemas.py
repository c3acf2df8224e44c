from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class PromoCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=32)
    fuel_amount: int = Field(0, ge=0)
    mmc_amount: int = Field(0, ge=0)
    max_uses: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None


class PromoCodeUpdate(BaseModel):
    is_active: Optional[bool] = None
    max_uses: Optional[int] = Field(None, gt=0)
    expires_at: Optional[datetime] = None


class PromoCodeResponse(BaseModel):
    id: str
    code: str
    fuel_amount: int = 0
    mmc_amount: int = 0
    max_uses: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    used_count: int = 0
    created_at: Optional[datetime] = None


class DirectBonusCreate(BaseModel):
    name: str
    description: Optional[str] = None
    bonus_percentage: float = Field(..., gt=0, le=100)
    min_bet_amount: float = Field(0, ge=0)
    max_uses_per_user: Optional[int] = Field(None, gt=0)
    starts_at: datetime
    ends_at: Optional[datetime] = None


class DirectBonusUpdate(BaseModel):
    is_active: Optional[bool] = None
    ends_at: Optional[datetime] = None


class DirectBonusResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    bonus_percentage: float
    min_bet_amount: float = 0
    max_uses_per_user: Optional[int] = None
    starts_at: datetime
    ends_at: Optional[datetime] = None
    is_active: bool = True
    total_applications: int = 0
    total_bonus_given_cop: float = 0
