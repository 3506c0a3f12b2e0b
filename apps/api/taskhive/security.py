from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from taskhive.config import settings

TOKEN_TYPE_ACCESS = "access"


class InvalidTokenError(RuntimeError):
  pass


def create_access_token(user_id: str, *, ttl_minutes: int | None = None) -> str:
  now = datetime.now(timezone.utc)
  ttl = settings.access_token_ttl_minutes if ttl_minutes is None else ttl_minutes
  claims = {
    "sub": str(user_id),
    "type": TOKEN_TYPE_ACCESS,
    "iat": int(now.timestamp()),
    "exp": int((now + timedelta(minutes=ttl)).timestamp()),
  }
  return jwt.encode(claims, settings.app_secret, algorithm=settings.token_algorithm)


def decode_access_token(token: str) -> str:
  """Return the user id carried by a valid access token."""
  tok = (token or "").strip()
  if not tok:
    raise InvalidTokenError("Token not provided")
  try:
    payload = jwt.decode(tok, settings.app_secret, algorithms=[settings.token_algorithm])
  except JWTError as exc:
    raise InvalidTokenError("Invalid token") from exc
  if payload.get("type") != TOKEN_TYPE_ACCESS or not payload.get("sub"):
    raise InvalidTokenError("Invalid token")
  return str(payload["sub"])


def bearer_token(authorization: str | None) -> str | None:
  if authorization and authorization.lower().startswith("bearer "):
    return authorization.split(" ", 1)[1].strip() or None
  return None
