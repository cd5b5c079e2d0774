"""Badge API routes. Badges are awarded only by automation rules."""

from fastapi import APIRouter, Depends

from taskflow.api.deps import get_stores
from taskflow.core.auth import AuthUser, require_auth
from taskflow.domain.entities import Badge
from taskflow.store.base import Stores

router = APIRouter()


@router.get("/me", response_model=list[Badge])
async def list_my_badges(
    user: AuthUser = Depends(require_auth),
    stores: Stores = Depends(get_stores),
):
    return await stores.badges.list_badges(user.user_id)
