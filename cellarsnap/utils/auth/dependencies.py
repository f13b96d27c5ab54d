from jose import JWTError, jwt
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from cellarsnap.core.config import settings
from cellarsnap.friends.errors import Unauthenticated

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def _decode_user_id(token_value: str | None) -> int | None:
    if not token_value:
        return None
    try:
        payload = jwt.decode(token_value, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("type", "access") != "access":
        return None
    sub = payload.get("sub")
    try:
        return int(sub) if sub is not None else None
    except (TypeError, ValueError):
        return None


async def get_optional_user_id(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
) -> int | None:
    """Caller's user id, or None for anonymous / invalid credentials."""
    return _decode_user_id(token or request.cookies.get(settings.ACCESS_TOKEN_COOKIE_NAME))


async def get_current_user_id(
    user_id: int | None = Depends(get_optional_user_id),
) -> int:
    if user_id is None:
        raise Unauthenticated("Unauthorized")
    return user_id
