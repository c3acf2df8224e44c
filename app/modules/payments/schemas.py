from pydantic import BaseModel
from typing import Any, Dict, Union


class BoldHashRequest(BaseModel):
    amount: Any = None


class BoldHashResponse(BaseModel):
    orderId: str
    amount: Union[int, float]
    redirectUrl: str
    integritySignature: str
    metadata: Dict[str, str]
