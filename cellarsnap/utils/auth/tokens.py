from datetime import datetime, timedelta, timezone
from jose import jwt
from cellarsnap.core.config import settings

def create_token(data: dict, expires_delta: timedelta = timedelta(minutes=30), token_type: str = "access"):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire, "type": token_type})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
