"""
User directory endpoints for API v1 (admin only).

``/stats/overview`` is declared before ``/{user_id}`` so the literal
path is not captured by the identifier route.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from catalog_api.app.core.query import parse_id
from catalog_api.app.core.security import require_admin
from catalog_api.app.schemas.user import UserAdminUpdate, UserRead, UserRole
from catalog_api.app.services.user_service import UserService

router = APIRouter()


@router.get("/")
async def list_users(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    role: Optional[UserRole] = None,
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort: Optional[str] = None,
    current_user: UserRead = Depends(require_admin),
) -> dict:
    """List accounts with pagination, role filter and text search.

    ``limit`` is capped at 50.  ``sort`` accepts comma‑separated field
    names, each optionally prefixed with ``-`` for descending order.
    """
    return await UserService.list_users(
        page=page, limit=limit, role=role, search=search, is_active=is_active, sort=sort
    )


@router.get("/stats/overview")
async def stats_overview(current_user: UserRead = Depends(require_admin)) -> dict:
    return await UserService.stats_overview()


@router.get("/{user_id}")
async def get_user(user_id: str, current_user: UserRead = Depends(require_admin)) -> dict:
    user = await UserService.get_user(parse_id(user_id, "user"))
    return {"user": user}


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    payload: UserAdminUpdate,
    current_user: UserRead = Depends(require_admin),
) -> dict:
    user = await UserService.update_user(current_user, parse_id(user_id, "user"), payload)
    return {"message": "User updated successfully", "user": user}


@router.delete("/{user_id}")
async def delete_user(user_id: str, current_user: UserRead = Depends(require_admin)) -> dict:
    """Deactivate an account.  The record is kept; admins cannot delete themselves."""
    await UserService.delete_user(current_user, parse_id(user_id, "user"))
    return {"message": "User deleted successfully"}
