from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.dependencies import get_current_user, guest_session_header
from storefront.core.rate_limit import limiter
from storefront.core.security import decode_token
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.schemas.auth import AuthResponse, RefreshRequest, TokenPair, UserResponse
from storefront.schemas.intent import ResumeOutcome
from storefront.schemas.user import UserCreate, UserLogin
from storefront.services import auth as auth_service
from storefront.services import auth_events

router = APIRouter(prefix="/auth", tags=["auth"])

register_rate_limit = limiter("auth:register", settings.auth_rate_limit_register, 60)
login_rate_limit = limiter("auth:login", settings.auth_rate_limit_login, 60)
refresh_rate_limit = limiter("auth:refresh", settings.auth_rate_limit_refresh, 60)


async def _authenticated(
    session: AsyncSession, user: User, guest_session_id: str | None, method: str
) -> AuthResponse:
    tokens = await auth_service.issue_tokens_for_user(session, user)
    # Serialize before subscribers run; a failed replay rolls the session back.
    user_response = UserResponse.model_validate(user)
    results = await auth_events.bus.publish(
        auth_events.AuthenticationSucceeded(user=user, session=session, guest_session_id=guest_session_id, method=method)
    )
    resume = next((result for result in results if isinstance(result, ResumeOutcome)), None)
    return AuthResponse(user=user_response, tokens=TokenPair(**tokens), resume=resume)


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
async def register(
    user_in: UserCreate,
    session: AsyncSession = Depends(get_session),
    session_id: str | None = Depends(guest_session_header),
    _: None = Depends(register_rate_limit),
) -> AuthResponse:
    user = await auth_service.create_user(session, user_in)
    return await _authenticated(session, user, session_id, "register")


@router.post("/login", response_model=AuthResponse)
async def login(
    user_in: UserLogin,
    session: AsyncSession = Depends(get_session),
    session_id: str | None = Depends(guest_session_header),
    _: None = Depends(login_rate_limit),
) -> AuthResponse:
    user = await auth_service.authenticate_user(session, user_in.email, user_in.password)
    return await _authenticated(session, user, session_id, "login")


@router.post("/refresh", response_model=TokenPair)
async def refresh_tokens(
    refresh_request: RefreshRequest,
    session: AsyncSession = Depends(get_session),
    _: None = Depends(refresh_rate_limit),
) -> TokenPair:
    stored = await auth_service.validate_refresh_token(session, refresh_request.refresh_token)
    user = await session.get(User, stored.user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    # rotate token
    stored.revoked = True
    stored.revoked_reason = "rotated"
    session.add(stored)
    await session.flush()
    tokens = await auth_service.issue_tokens_for_user(session, user)
    return TokenPair(**tokens)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    payload: RefreshRequest,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(get_current_user),
) -> None:
    payload_data = decode_token(payload.refresh_token)
    if payload_data and payload_data.get("jti"):
        await auth_service.revoke_refresh_token(session, payload_data["jti"], reason="logout")
    return None


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
