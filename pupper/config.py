"""Configuration constants and env-driven flags for Pupper."""

from __future__ import annotations

import os

ACCEPTED_SPECIES = "Labrador Retriever"
DOG_STATUS_AVAILABLE = "available"
DOG_STATUS_ADOPTED = "adopted"
DOG_STATUSES = (DOG_STATUS_AVAILABLE, DOG_STATUS_ADOPTED)

VOTE_TYPES = ("wag", "growl")

APPLICATION_STATUS_PENDING = "pending"
APPLICATION_STATUS_APPROVED = "approved"
APPLICATION_STATUS_REJECTED = "rejected"
APPLICATION_DECISIONS = (APPLICATION_STATUS_APPROVED, APPLICATION_STATUS_REJECTED)

UNKNOWN_DOG_NAME = "Unknown Dog"
DAYS_PER_YEAR = 365.25

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
MAX_BODY_BYTES = 64 * 1024

DEFAULT_NOTIFY_CHANNELS = ("email", "sms")
DEFAULT_SMS_API_BASE = "https://api.twilio.com/2010-04-01"
DEFAULT_TASK_MAX_ATTEMPTS = 5
DEFAULT_TASK_CLAIM_TIMEOUT_SECONDS = 300
DEFAULT_WORKER_BATCH = 100
DEFAULT_AUTH_SECRET = "pupper-dev-auth-secret-change-me"
SIGNATURE_TEAM = "The Pupper Adoption Team"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean flag from env, falling back when unset or unrecognized."""
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


def allow_applications_for_adopted_dogs() -> bool:
    """Whether submissions against missing or adopted dogs are accepted."""
    return env_flag("PUPPER_ALLOW_APPLICATIONS_FOR_ADOPTED", True)


def enforce_dog_ownership() -> bool:
    """Whether only the dog's creator may decide its applications."""
    return env_flag("PUPPER_ENFORCE_DOG_OWNERSHIP", True)


def require_auth() -> bool:
    return env_flag("PUPPER_REQUIRE_AUTH", False)


def auth_secret() -> str:
    secret = os.environ.get("PUPPER_AUTH_SECRET", "").strip()
    return secret or DEFAULT_AUTH_SECRET


def get_notify_channels() -> tuple[str, ...]:
    """Return enabled notification channels from env, deduped in order."""
    raw = os.environ.get("PUPPER_NOTIFY_CHANNELS", ",".join(DEFAULT_NOTIFY_CHANNELS))
    parsed = [item.strip().lower() for item in raw.split(",") if item.strip()]
    return tuple(dict.fromkeys(parsed))


def task_max_attempts() -> int:
    try:
        value = int(os.environ.get("PUPPER_TASK_MAX_ATTEMPTS", DEFAULT_TASK_MAX_ATTEMPTS))
    except ValueError:
        return DEFAULT_TASK_MAX_ATTEMPTS
    return max(1, value)


def task_claim_timeout() -> float:
    """Seconds after which a claimed, unfinished task may be claimed again."""
    try:
        value = float(
            os.environ.get("PUPPER_TASK_CLAIM_TIMEOUT", DEFAULT_TASK_CLAIM_TIMEOUT_SECONDS)
        )
    except ValueError:
        return DEFAULT_TASK_CLAIM_TIMEOUT_SECONDS
    return max(1.0, value)


def sms_api_base() -> str:
    return (os.environ.get("SMS_API_BASE") or DEFAULT_SMS_API_BASE).rstrip("/")
