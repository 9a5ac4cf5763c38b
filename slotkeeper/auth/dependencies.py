from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from slotkeeper.auth import jwt_handler
from slotkeeper.database import SessionLocal
from slotkeeper.models.user import User

security = HTTPBearer()

STAFF_ROLES = {"admin", "professional", "staff"}


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
    finally:
        db.close()
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    if user.role not in STAFF_ROLES:
        raise HTTPException(status_code=403, detail="Staff access required")
    return user


def ensure_can_manage_professional(current_user: User, professional: User | None) -> None:
    """Professionals manage their own calendar; admins manage anyone in their organization."""
    if professional is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Professional not found.")
    if current_user.id == professional.id:
        return
    if current_user.role == "admin" and current_user.organization_id == professional.organization_id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Only the professional or an organization admin can manage this calendar.",
    )


def ensure_same_organization(current_user: User, organization_id: int | None) -> None:
    if organization_id is not None and current_user.organization_id != organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Appointment belongs to another organization.",
        )


def ensure_admin(current_user: User) -> None:
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organization admins can remove appointments.",
        )
