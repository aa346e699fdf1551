"""Signed actor tokens used by the HTTP layer to establish who is calling."""

from __future__ import annotations

import hashlib
import hmac

from pupper.config import auth_secret

MAX_ACTOR_LENGTH = 200


def actor_signature(actor_id: str) -> str:
    """Build an HMAC signature for an actor identity."""
    payload = actor_id.encode("utf-8")
    secret = auth_secret().encode("utf-8")
    return hmac.new(secret, payload, hashlib.sha256).hexdigest()


def encode_actor_token(actor_id: str) -> str:
    return f"{actor_id}.{actor_signature(actor_id)}"


def decode_actor_token(raw_value: str | None) -> str | None:
    """Verify a signed actor token and return the actor id, or None."""
    value = (raw_value or "").strip()
    if "." not in value:
        return None
    actor_id, signature = value.rsplit(".", 1)
    if not actor_id or len(actor_id) > MAX_ACTOR_LENGTH:
        return None
    expected = actor_signature(actor_id)
    if not hmac.compare_digest(signature, expected):
        return None
    return actor_id


def bearer_token(header_value: str | None) -> str | None:
    """Extract the credentials of an ``Authorization: Bearer`` header."""
    scheme, _, credentials = (header_value or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()
