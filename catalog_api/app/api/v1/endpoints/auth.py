"""
Authentication endpoints for API v1.

Registration and both login flavours return a bearer token together
with a short account summary.  Tokens are stateless, so ``logout`` only
acknowledges the request; clients discard the token themselves.
"""

from fastapi import APIRouter, Depends, status

from catalog_api.app.core.security import create_access_token, get_current_user
from catalog_api.app.schemas.user import (
    PasswordChange,
    ProfileUpdate,
    UserLogin,
    UserRead,
    UserRegister,
)
from catalog_api.app.services.user_service import UserService

router = APIRouter()


def _session(user: UserRead, message: str) -> dict:
    return {
        "message": message,
        "token": create_access_token(user.id),
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "role": user.role.value,
        },
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: UserRegister) -> dict:
    """Create a ``user`` account and sign it in."""
    user = await UserService.register(payload)
    return _session(user, "User registered successfully")


@router.post("/login")
async def login(payload: UserLogin) -> dict:
    user = await UserService.authenticate(payload.email, payload.password)
    return _session(user, "Login successful")


@router.post("/admin-login")
async def admin_login(payload: UserLogin) -> dict:
    """Same as ``login`` but only admits accounts with the admin role."""
    user = await UserService.authenticate(payload.email, payload.password, admin_only=True)
    return _session(user, "Admin login successful")


@router.get("/profile")
async def get_profile(current_user: UserRead = Depends(get_current_user)) -> dict:
    return {"message": "Profile retrieved successfully", "user": current_user}


@router.put("/profile")
async def update_profile(payload: ProfileUpdate, current_user: UserRead = Depends(get_current_user)) -> dict:
    user = await UserService.update_profile(current_user, payload)
    return {"message": "Profile updated successfully", "user": user}


@router.post("/change-password")
async def change_password(payload: PasswordChange, current_user: UserRead = Depends(get_current_user)) -> dict:
    await UserService.change_password(current_user, payload)
    return {"message": "Password changed successfully"}


@router.post("/logout")
async def logout(current_user: UserRead = Depends(get_current_user)) -> dict:
    return {"message": "Logout successful"}
