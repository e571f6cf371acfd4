from fastapi import Depends, HTTPException, Header
from gobuddy.services.auth.jwt_handler import ADMIN_ROLE, decode_access_token


def _strip_bearer(access_token: str) -> str:
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    return access_token


def get_token_payload(access_token: str = Header(..., description="Access token (without Bearer)")) -> dict:
    """Decoded JWT claims; 401 when the token is missing a user"""
    payload = decode_access_token(_strip_bearer(access_token))
    if not payload or not payload.get("user_id"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


def get_current_user_id(payload: dict = Depends(get_token_payload)) -> str:
    """Extract current user ID from JWT token"""
    return payload["user_id"]


def is_admin(payload: dict = Depends(get_token_payload)) -> bool:
    return payload.get("role") == ADMIN_ROLE


def require_admin(payload: dict = Depends(get_token_payload)) -> str:
    """Admin-only routes; returns the admin's user ID"""
    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")
    return payload["user_id"]
