from __future__ import annotations

from jose import JWTError, jwt

from app.core.config import settings


class AuthError(Exception):
    pass


def decode_token(token: str) -> dict:
    options = {"verify_aud": settings.JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            options=options,
        )
    except JWTError as exc:
        raise AuthError("Invalid token") from exc
