from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.enums import UserRole


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Resolve the authenticated principal from the access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError:
        raise credentials_exception

    subject = payload.get("sub")
    role_name = payload.get("role")
    if not subject or role_name not in (UserRole.ADMIN.value, UserRole.PARENT.value):
        raise credentials_exception

    try:
        user_id = UUID(subject)
        student_id = UUID(payload["student_id"]) if payload.get("student_id") else None
    except ValueError:
        raise credentials_exception

    if role_name == UserRole.PARENT.value and student_id is None:
        raise credentials_exception

    return CurrentUser(id=user_id, role=UserRole(role_name), student_id=student_id)


async def get_current_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return current_user


async def get_current_parent(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if current_user.role != UserRole.PARENT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Parent portal access only",
        )
    return current_user
