from fastapi import APIRouter, Depends
from app.core.dependencies import require_internal_key
from app.modules.notifications.email import EmailService, get_email_service
from app.modules.notifications.schemas import (
    PickConfirmationRequest, NumbersConfirmationRequest, CoinsConfirmationRequest, PredictionEmailRequest,
    EmailSentResponse
)

router = APIRouter(tags=["notifications"], dependencies=[Depends(require_internal_key)])


@router.post("/send-pick-confirmation", response_model=EmailSentResponse)
async def send_pick_confirmation(
    body: PickConfirmationRequest,
    email: EmailService = Depends(get_email_service)
):
    sent = email.send_pick_confirmation(body.to, body.name, body.amount, body.mode, [p.model_dump() for p in body.picks])
    return EmailSentResponse(status="ok", sent=sent)


@router.post("/send-numbers-confirmation", response_model=EmailSentResponse)
async def send_numbers_confirmation(
    body: NumbersConfirmationRequest,
    email: EmailService = Depends(get_email_service)
):
    sent = email.send_numbers_confirmation(body.to, body.name, body.numbers, body.context, body.orderId, body.amount)
    return EmailSentResponse(status="ok", sent=sent)


@router.post("/send-coins-confirmation", response_model=EmailSentResponse)
async def send_coins_confirmation(
    body: CoinsConfirmationRequest,
    email: EmailService = Depends(get_email_service)
):
    sent = email.send_coins_confirmation(body.to, body.amount, body.mmc, body.fc)
    return EmailSentResponse(status="ok", sent=sent)


@router.post("/send-prediction-email", response_model=EmailSentResponse)
async def send_prediction_email(
    body: PredictionEmailRequest,
    email: EmailService = Depends(get_email_service)
):
    sent = email.send_prediction_confirmation(body.userEmail, body.userName, body.gpName, body.predictions)
    return EmailSentResponse(status="ok", sent=sent)
