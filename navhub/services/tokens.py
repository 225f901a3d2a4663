"""Compact signed credentials.

A token is ``header.payload.signature``: header and payload are compact JSON
in URL-safe base64 without padding, and the signature is HMAC-SHA256 over the
exact ``header.payload`` bytes keyed with the server secret. Tokens are never
stored; their validity is recomputed on every verification.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field

from itsdangerous import BadData, Signer
from itsdangerous.encoding import base64_decode, base64_encode
from itsdangerous.signer import HMACAlgorithm

TOKEN_HEADER = {"alg": "HS256", "typ": "JWT"}
RESERVED_CLAIMS = ("sub", "iat", "exp")


@dataclass(frozen=True)
class TokenVerification:
    valid: bool
    subject: str | None = None
    claims: dict = field(default_factory=dict)


INVALID_TOKEN = TokenVerification(valid=False)


def _encode_segment(value: dict) -> str:
    raw = json.dumps(value, separators=(",", ":"), sort_keys=True)
    return base64_encode(raw.encode("utf-8")).decode("ascii")


def _decode_segment(segment: str) -> dict | None:
    value = json.loads(base64_decode(segment))
    if not isinstance(value, dict):
        return None
    return value


class TokenCodec:
    def __init__(self, secret_key: str | bytes, clock=time.time):
        if not secret_key:
            raise ValueError("a signing secret is required")
        self._signer = Signer(
            secret_key,
            sep=".",
            key_derivation="none",
            digest_method=hashlib.sha256,
            algorithm=HMACAlgorithm(hashlib.sha256),
        )
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def sign(self, subject: str, ttl_seconds: int, claims: dict | None = None) -> str:
        issued_at = self._now()
        payload = {
            key: value
            for key, value in (claims or {}).items()
            if key not in RESERVED_CLAIMS
        }
        payload.update(
            {"sub": subject, "iat": issued_at, "exp": issued_at + int(ttl_seconds)}
        )
        signing_input = f"{_encode_segment(TOKEN_HEADER)}.{_encode_segment(payload)}"
        return self._signer.sign(signing_input).decode("ascii")

    def verify(self, token: str, now: int | None = None) -> TokenVerification:
        if not isinstance(token, str):
            return INVALID_TOKEN
        segments = token.split(".")
        if len(segments) != 3 or not all(segments):
            return INVALID_TOKEN

        try:
            self._signer.unsign(token)
            header = _decode_segment(segments[0])
            payload = _decode_segment(segments[1])
        except (BadData, ValueError):
            return INVALID_TOKEN

        if header is None or payload is None:
            return INVALID_TOKEN
        if header.get("alg") != TOKEN_HEADER["alg"]:
            return INVALID_TOKEN

        expires_at = payload.get("exp")
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            return INVALID_TOKEN
        check_time = self._now() if now is None else int(now)
        if expires_at < check_time:
            return INVALID_TOKEN

        subject = payload.get("sub")
        if not isinstance(subject, str):
            return INVALID_TOKEN
        return TokenVerification(valid=True, subject=subject, claims=payload)
