"""Verification of bearer tokens issued by the salon's identity provider.

The provider signs tokens whose subject is the profile id and which usually
carry the account email; this service only checks them, it never issues any.
"""

from dataclasses import dataclass

import jwt

from salon_backend.core import config


class TokenError(Exception):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    email: str | None = None


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            audience=config.JWT_AUDIENCE or None,
            options={"require": ["exp", "sub"], "verify_aud": bool(config.JWT_AUDIENCE)},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc

    subject = str(payload["sub"]).strip()
    if not subject:
        raise TokenError("Invalid token subject")

    email = payload.get("email")
    if isinstance(email, str) and email.strip():
        return TokenClaims(subject=subject, email=email.strip().lower())
    return TokenClaims(subject=subject)
