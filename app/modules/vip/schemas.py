from pydantic import BaseModel
from typing import Any, Dict, Optional


class RegisterOrderRequest(BaseModel):
    planId: Optional[str] = None


class RegisterOrderResponse(BaseModel):
    orderId: str
    amount: str
    description: str
    integritySignature: str
    redirectionUrl: str
    activeGp: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    orderId: Optional[str] = None


class VerifyAccessRequest(BaseModel):
    orderId: Optional[str] = None
    email: Optional[str] = None


class CollectEmailRequest(BaseModel):
    orderId: Optional[str] = None
    email: Optional[str] = None


class AutoLoginRequest(BaseModel):
    sessionToken: Optional[str] = None
    orderId: Optional[str] = None


class CreatePredictionOrderRequest(BaseModel):
    predictions: Optional[Dict[str, Any]] = None
    gpName: Optional[str] = None
    userEmail: Optional[str] = None
    userName: Optional[str] = None
