"""Direct Line REST client, wire models and token decoding."""

from .client import DirectLineClient
from .models import ActivitySet, ConversationHandle
from .token import TOKEN_PREFIX, DirectLineClaims, decode_token, looks_like_token

__all__ = [
    "ActivitySet",
    "ConversationHandle",
    "DirectLineClaims",
    "DirectLineClient",
    "TOKEN_PREFIX",
    "decode_token",
    "looks_like_token",
]
