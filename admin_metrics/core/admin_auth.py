"""
Admin Authentication
Verifies the console's admin JWT and that the user still has the admin role
"""

import logging
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi import HTTPException, status, Request
from admin_metrics.core.config import settings
from admin_metrics.core.database import get_supabase_client, first_row

logger = logging.getLogger(__name__)


def verify_admin_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify admin JWT token"""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    if payload.get("type") != "admin":
        return None
    return payload


def bearer_token(request: Request) -> str:
    authorization = request.headers.get("authorization")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization format",
        )

    token = authorization.replace("Bearer ", "").strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token required",
        )
    return token


async def get_current_admin(request: Request) -> Dict[str, Any]:
    """
    Dependency to get current admin user from request
    Verifies JWT token and checks admin role
    """
    payload = verify_admin_token(bearer_token(request))

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    supabase = get_supabase_client()
    result = (
        supabase.table("users")
        .select("id, email, role, status, name")
        .eq("id", payload.get("user_id"))
        .execute()
    )

    user = first_row(result.data)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if user.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )

    if user.get("status") != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active",
        )

    return {
        "id": user["id"],
        "email": user["email"],
        "display_name": user.get("name"),
        "role": user["role"],
    }


def log_admin_action(
    admin_user_id: str,
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Log an admin action to the audit_logs table"""
    try:
        get_supabase_client().table("audit_logs").insert(
            {
                "admin_user_id": admin_user_id,
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "new_values": details,
            }
        ).execute()
    except Exception as e:
        # Don't fail the request if audit logging fails
        logger.warning(f"Failed to log admin action: {e}", extra={"action": action})
