from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from app.core.dependencies import get_current_user_id, require_internal_key
from app.database.supabase_client import get_supabase
from app.modules.entries.schemas import EntryCreate, EntryResponse, PaidPackRequest, PaidPackResponse
from app.modules.entries.service import EntryService
from supabase import Client

router = APIRouter(prefix="/entries", tags=["entries"])


def get_entry_service(supabase: Client = Depends(get_supabase)) -> EntryService:
    return EntryService(supabase)


@router.get("", response_model=EntryResponse)
async def get_my_entry(
    user_id: str = Depends(get_current_user_id),
    service: EntryService = Depends(get_entry_service)
):
    """The caller's raffle numbers (empty when they have no entry yet)"""
    entry = service.get_entry(user_id) or {}
    return EntryResponse(
        numbers=entry.get("numbers") or [],
        paid_numbers_count=entry.get("paid_numbers_count") or 0,
    )


@router.post("")
async def create_my_entry(
    body: EntryCreate,
    user_id: str = Depends(get_current_user_id),
    service: EntryService = Depends(get_entry_service)
):
    if not service.create_entry(user_id, body.name, body.email, body.region):
        return {"message": "Entry already exists"}
    return JSONResponse(status_code=201, content={"message": "Entry created successfully"})


@router.post("/paid", response_model=PaidPackResponse, dependencies=[Depends(require_internal_key)])
async def add_paid_numbers(
    body: PaidPackRequest,
    service: EntryService = Depends(get_entry_service)
):
    """Grant one paid pack outside the Bold webhook (manual fixes, partner sales)"""
    return PaidPackResponse(success=True, newNumbers=service.add_paid_pack(body.userId))
