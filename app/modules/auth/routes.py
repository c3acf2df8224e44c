from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase, first_row
from app.modules.auth.schemas import CurrentUserResponse, VipAccess
from app.modules.vip.service import VipService
from app.core.dependencies import get_current_user_id
from supabase import Client

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    supabase: Client = Depends(get_supabase)
):
    """Caller's profile mirror plus VIP access. A user the webhook has not synced yet gets an empty profile."""
    user = first_row(
        supabase.table("clerk_users").select("clerk_id, email, username, full_name").eq("clerk_id", user_id).limit(1).execute()
    ) or {}
    access = VipService(supabase).check_access(user_id)
    return CurrentUserResponse(
        clerk_id=user_id,
        email=user.get("email"),
        username=user.get("username"),
        full_name=user.get("full_name"),
        vip=VipAccess(hasAccess=access["hasAccess"], plan=access.get("plan"), expiresAt=access.get("expiresAt")),
    )
