"""Tests for Direct Line token decoding."""

from __future__ import annotations

import jwt
import pytest

from app.relay.directline.token import DirectLineClaims, decode_token, looks_like_token
from app.relay.errors import CredentialError


class TestLooksLikeToken:
    def test_jwt_prefix(self, token_factory) -> None:
        assert looks_like_token(token_factory())
        assert looks_like_token("eyJhbGciOiJIUzI1NiJ9.x.y")

    def test_other_text(self) -> None:
        assert not looks_like_token("hello")
        assert not looks_like_token("")
        assert not looks_like_token(None)
        assert not looks_like_token(" eyJhb")


class TestDecodeToken:
    def test_reads_routing_claims(self, token_factory) -> None:
        claims = decode_token(token_factory("bot-1", "conv-1", site="abc"))
        assert claims == DirectLineClaims(bot="bot-1", conv="conv-1")

    def test_signature_is_not_verified(self) -> None:
        token = jwt.encode({"bot": "b", "conv": "c"}, "some-other-key-that-nobody-shares", algorithm="HS256")
        assert decode_token(token).conv == "c"

    def test_garbage(self) -> None:
        with pytest.raises(CredentialError, match="could not be decoded"):
            decode_token("eyJhbGciOi.garbage")

    def test_empty(self) -> None:
        with pytest.raises(CredentialError):
            decode_token("")

    def test_missing_claims(self) -> None:
        token = jwt.encode({"bot": "b"}, "relay-tests-signing-key-never-verified", algorithm="HS256")
        with pytest.raises(CredentialError, match="conv"):
            decode_token(token)
