import re
import uuid
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.core.logging_config import guest_session_ctx_var
from storefront.core.security import decode_token
from storefront.db.session import get_session
from storefront.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)

SESSION_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._:-]{0,254}$")


async def _resolve_user(credentials: HTTPAuthorizationCredentials | None, session: AsyncSession) -> User:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    return await _resolve_user(credentials, session)


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    if credentials is None:
        return None
    try:
        return await _resolve_user(credentials, session)
    except HTTPException:
        return None


async def guest_session_header(x_session_id: str | None = Header(default=None)) -> str | None:
    if x_session_id is None or not x_session_id.strip():
        return None
    value = x_session_id.strip()
    if not SESSION_ID_RE.fullmatch(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid session id")
    guest_session_ctx_var.set(value)
    return value


def new_guest_session_id() -> str:
    return f"guest-{uuid.uuid4()}"
