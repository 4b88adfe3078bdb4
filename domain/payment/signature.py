"""
Webhook signature verification (HMAC-SHA256).

Two wire protocols are supported and deliberately kept apart:

- ``RawBodySignatureVerifier``: digest over the exact request body bytes,
  delivered as a hex string in a header (ticketing platform webhooks).
  The body must be captured before any JSON parsing.
- ``FieldSignatureVerifier``: digest over a ``:``-joined ordered tuple of
  fields taken from the parsed JSON body, delivered base64-encoded in a body
  field (provider notifications).
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

SecretEncoding = Literal["raw", "hex"]
DigestEncoding = Literal["hex", "base64"]

FIELD_SEPARATOR = ":"


def _key_bytes(secret: str, encoding: SecretEncoding) -> bytes:
    if encoding == "hex":
        try:
            return binascii.unhexlify(secret)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("HMAC secret is not valid hex") from exc
    return secret.encode("utf-8")


def compute_signature(
    secret: str,
    message: bytes,
    *,
    secret_encoding: SecretEncoding = "raw",
    digest_encoding: DigestEncoding = "hex",
) -> str:
    digest = hmac.new(_key_bytes(secret, secret_encoding), message, hashlib.sha256).digest()
    if digest_encoding == "base64":
        return base64.b64encode(digest).decode("ascii")
    return digest.hex()


def canonical_payload(fields: Sequence[Optional[str]], null_representation: str = "") -> str:
    """Join fields in order; ``None`` becomes ``null_representation``."""
    return FIELD_SEPARATOR.join(null_representation if f is None else str(f) for f in fields)


@dataclass(frozen=True)
class RawBodySignatureVerifier:
    secret: str
    secret_encoding: SecretEncoding = "raw"

    def sign(self, raw_body: bytes) -> str:
        return compute_signature(self.secret, raw_body, secret_encoding=self.secret_encoding, digest_encoding="hex")

    def verify(self, raw_body: bytes, provided_signature: str) -> bool:
        # hex comparison is case-insensitive; headers may carry non-ASCII text
        expected = self.sign(raw_body).encode("ascii")
        provided = provided_signature.strip().lower().encode("ascii", "replace")
        return hmac.compare_digest(expected, provided)


@dataclass(frozen=True)
class FieldSignatureVerifier:
    secret: str
    secret_encoding: SecretEncoding = "hex"
    null_representation: str = ""

    def sign(self, fields: Sequence[Optional[str]]) -> str:
        message = canonical_payload(fields, self.null_representation).encode("utf-8")
        return compute_signature(
            self.secret, message, secret_encoding=self.secret_encoding, digest_encoding="base64"
        )

    def verify(self, fields: Sequence[Optional[str]], provided_signature: str) -> bool:
        expected = self.sign(fields)
        return hmac.compare_digest(expected.encode("ascii"), provided_signature.strip().encode("ascii", "replace"))
