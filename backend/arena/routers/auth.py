import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_session
from ..models import Profile
from ..schemas import ProfileCreate, ProfileLogin, TokenOut, ProfileOut
from ..exceptions import http_problem


def get_jwt_secret() -> str:
  secret = os.getenv("JWT_SECRET")
  if not secret:
    raise RuntimeError("JWT_SECRET environment variable is required")
  if len(secret) < 32 or secret.lower() in {"secret", "changeme", "default"}:
    raise RuntimeError(
        "JWT_SECRET must be at least 32 characters and not a common default"
    )
  return secret


JWT_ALG = "HS256"
JWT_EXPIRE_SECONDS = 3600


def _rate_limits_disabled() -> bool:
  return (os.getenv("DISABLE_AUTH_RATE_LIMITS") or "").lower() == "true"


def _get_client_ip(request: Request) -> str:
  forwarded = request.headers.get("X-Forwarded-For")
  if forwarded:
    parts = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
    if parts:
      return parts[-1]
  real_ip = request.headers.get("X-Real-IP")
  if real_ip:
    return real_ip
  return request.client.host if request.client else ""


limiter = Limiter(key_func=_get_client_ip)
router = APIRouter(prefix="/auth", tags=["auth"])


def signup_rate_limit() -> str:
  if _rate_limits_disabled():
    return "1000/second"
  return "5/minute"


def login_rate_limit() -> str:
  if _rate_limits_disabled():
    return "1000/second"
  return "5/minute"


class _BcryptContext:
  def hash(self, password: str) -> str:
    if not isinstance(password, str):
      raise TypeError("password must be a string")
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")

  def verify(self, password: str, hashed: str) -> bool:
    if not isinstance(password, str) or not isinstance(hashed, str):
      return False
    try:
      return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
      return False


pwd_context = _BcryptContext()


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
  detail = exc.detail if isinstance(exc.detail, str) else ""
  if detail:
    message = f"rate limit exceeded: {detail}"
  else:
    message = "rate limit exceeded: please wait before submitting another request."
  return JSONResponse(
      status_code=429,
      content={
          "detail": message,
          "code": "rate_limit_exceeded",
      },
  )


def create_token(profile: Profile) -> str:
  now = datetime.now(timezone.utc)
  payload = {
      "sub": profile.id,
      "username": profile.username,
      "is_admin": profile.is_admin,
      "exp": now + timedelta(seconds=JWT_EXPIRE_SECONDS),
  }
  return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALG)


def profile_to_out(profile: Profile) -> ProfileOut:
  return ProfileOut(
      id=profile.id,
      username=profile.username,
      displayName=profile.display_name,
      avatarUrl=profile.avatar_url,
      isAdmin=bool(profile.is_admin),
  )


def _extract_bearer_token(authorization: str | None) -> str:
  if authorization and authorization.lower().startswith("bearer "):
    return authorization.split(" ", 1)[1]
  raise http_problem(
      status_code=401,
      detail="missing token",
      code="auth_missing_token",
  )


async def resolve_token(token: str, session: AsyncSession) -> Profile:
  try:
    payload = jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALG])
  except jwt.ExpiredSignatureError:
    raise http_problem(
        status_code=401,
        detail="token expired",
        code="auth_token_expired",
    )
  except jwt.PyJWTError:
    raise http_problem(
        status_code=401,
        detail="invalid token",
        code="auth_invalid_token",
    )
  profile = await session.get(Profile, payload.get("sub"))
  if not profile:
    raise http_problem(
        status_code=401,
        detail="user not found",
        code="auth_user_not_found",
    )
  return profile


@router.post("/signup", response_model=TokenOut)
@limiter.limit(signup_rate_limit)
async def signup(
    request: Request,
    body: ProfileCreate,
    session: AsyncSession = Depends(get_session),
    admin_secret: str | None = Header(default=None, alias="X-Admin-Secret"),
):
  username = body.username.strip()
  if not username:
    raise http_problem(
        status_code=400,
        detail="username required",
        code="auth_username_required",
    )
  existing = (
      await session.execute(
          select(Profile).where(func.lower(Profile.username) == username.lower())
      )
  ).scalar_one_or_none()
  if existing:
    raise http_problem(status_code=400, detail="username exists", code="auth_username_exists")

  is_admin = False
  if body.is_admin:
    expected = os.getenv("ADMIN_SECRET")
    if not expected or admin_secret != expected:
      raise http_problem(
          status_code=403,
          detail="invalid admin secret",
          code="auth_invalid_admin_secret",
      )
    is_admin = True

  profile = Profile(
      id=uuid.uuid4().hex,
      username=username,
      password_hash=pwd_context.hash(body.password),
      display_name=body.display_name or username,
      is_admin=is_admin,
  )
  session.add(profile)
  await session.commit()
  return TokenOut(access_token=create_token(profile))


@router.post("/login", response_model=TokenOut)
@limiter.limit(login_rate_limit)
async def login(
    request: Request,
    body: ProfileLogin,
    session: AsyncSession = Depends(get_session),
):
  username = body.username.strip().lower()
  profile = (
      await session.execute(
          select(Profile).where(func.lower(Profile.username) == username)
      )
  ).scalar_one_or_none()
  if not profile or not pwd_context.verify(body.password, profile.password_hash):
    raise http_problem(
        status_code=401,
        detail="invalid credentials",
        code="auth_invalid_credentials",
    )
  return TokenOut(access_token=create_token(profile))


async def get_current_user(
    authorization: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Profile:
  return await resolve_token(_extract_bearer_token(authorization), session)


async def get_optional_user(
    authorization: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> Optional[Profile]:
  if not authorization:
    return None
  return await resolve_token(_extract_bearer_token(authorization), session)


async def require_admin(current: Profile = Depends(get_current_user)) -> Profile:
  if not current.is_admin:
    raise http_problem(status_code=403, detail="forbidden", code="auth_admin_required")
  return current


@router.get("/me", response_model=ProfileOut)
async def read_me(current: Profile = Depends(get_current_user)):
  return profile_to_out(current)
