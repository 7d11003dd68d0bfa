"""Direct Line token decoding.

Tokens are decoded for routing only: the bot and conversation identifiers
are read from the payload without verifying the signature.  Direct Line
itself authorizes every request made with the token.
"""

from __future__ import annotations

import jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import CredentialError

# Every JWT starts with the base64url encoding of '{"alg'
TOKEN_PREFIX = "eyJhb"


class DirectLineClaims(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    bot: str
    conv: str


def looks_like_token(text: str | None) -> bool:
    return bool(text) and text.startswith(TOKEN_PREFIX)


def decode_token(token: str) -> DirectLineClaims:
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as exc:
        raise CredentialError(f"Direct Line token could not be decoded: {exc}") from exc
    try:
        return DirectLineClaims.model_validate(payload)
    except ValidationError as exc:
        missing = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise CredentialError(
            f"Direct Line token is missing routing claims: {missing or 'bot, conv'}"
        ) from exc
