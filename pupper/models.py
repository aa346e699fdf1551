from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from .config import (
    APPLICATION_STATUS_PENDING,
    DAYS_PER_YEAR,
    DOG_STATUS_AVAILABLE,
    UNKNOWN_DOG_NAME,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


@dataclass(frozen=True)
class Dog:
    dog_id: str
    shelter: str
    city: str
    state: str
    name: str
    species: str
    description: str
    birthday: date
    weight: float
    color: str
    created_by: str

    status: str = DOG_STATUS_AVAILABLE
    entry_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    original_image_url: Optional[str] = None
    resized_image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    def age_years(self, today: date | None = None) -> float:
        """Return the dog's age in fractional years as of ``today``."""
        today = today or utc_now().date()
        return (today - self.birthday).days / DAYS_PER_YEAR

    @property
    def display_name(self) -> str:
        """Name used in notifications, falling back to the shelter."""
        return self.name or self.shelter or UNKNOWN_DOG_NAME

    @classmethod
    def from_record(cls, record: dict) -> "Dog":
        return cls(
            dog_id=str(record["dog_id"]),
            shelter=record["shelter"],
            city=record["city"],
            state=record["state"],
            name=record["name"],
            species=record["species"],
            description=record["description"],
            birthday=record["birthday"],
            weight=float(record["weight"]),
            color=record["color"],
            created_by=record["created_by"],
            status=record.get("status") or DOG_STATUS_AVAILABLE,
            entry_date=record.get("entry_date"),
            created_at=record["created_at"],
            updated_at=record.get("updated_at"),
            original_image_url=record.get("original_image_url"),
            resized_image_url=record.get("resized_image_url"),
            thumbnail_url=record.get("thumbnail_url"),
        )

    def to_dict(self) -> dict:
        return {
            "dogId": self.dog_id,
            "shelter": self.shelter,
            "city": self.city,
            "state": self.state,
            "name": self.name,
            "species": self.species,
            "description": self.description,
            "birthday": _iso(self.birthday),
            "weight": self.weight,
            "color": self.color,
            "createdBy": self.created_by,
            "status": self.status,
            "entryDate": _iso(self.entry_date),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "originalImageUrl": self.original_image_url,
            "resizedImageUrl": self.resized_image_url,
            "thumbnailUrl": self.thumbnail_url,
        }

    def __str__(self) -> str:
        return (
            f"Dog {self.dog_id} ({self.name}, {self.species}) "
            f"from {self.shelter}, {self.city} {self.state} [{self.status}]"
        )


@dataclass(frozen=True)
class Vote:
    user_id: str
    dog_id: str
    vote_type: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Application:
    application_id: str
    dog_id: str
    shelter: str
    adopter_id: str

    adopter_name: str
    adopter_email: str
    adopter_phone: str
    adopter_address: str
    living_space: str
    has_kids: bool
    experience: str = ""

    status: str = APPLICATION_STATUS_PENDING
    version: int = 1
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        # A freshly submitted application has createdAt == updatedAt.
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", self.created_at)

    @property
    def is_terminal(self) -> bool:
        return self.status != APPLICATION_STATUS_PENDING

    @classmethod
    def from_record(cls, record: dict) -> "Application":
        return cls(
            application_id=str(record["application_id"]),
            dog_id=str(record["dog_id"]),
            shelter=record["shelter"],
            adopter_id=record["adopter_id"],
            adopter_name=record["adopter_name"],
            adopter_email=record["adopter_email"],
            adopter_phone=record["adopter_phone"],
            adopter_address=record["adopter_address"],
            living_space=record["living_space"],
            has_kids=bool(record["has_kids"]),
            experience=record.get("experience") or "",
            status=record["status"],
            version=int(record.get("version") or 1),
            created_at=record["created_at"],
            updated_at=record.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "applicationId": self.application_id,
            "dogId": self.dog_id,
            "shelter": self.shelter,
            "adopterId": self.adopter_id,
            "status": self.status,
            "adopterName": self.adopter_name,
            "adopterEmail": self.adopter_email,
            "adopterPhone": self.adopter_phone,
            "adopterAddress": self.adopter_address,
            "experience": self.experience,
            "livingSpace": self.living_space,
            "hasKids": self.has_kids,
            "version": self.version,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class ApplicationTask:
    """Outbox row describing a follow-up step of a status transition."""

    task_id: int
    application_id: str
    kind: str
    payload: dict = field(default_factory=dict)
    state: str = "pending"
    attempts: int = 0
    last_error: Optional[str] = None

    @classmethod
    def from_record(cls, record: dict) -> "ApplicationTask":
        payload = record.get("payload")
        return cls(
            task_id=int(record["task_id"]),
            application_id=str(record["application_id"]),
            kind=record["kind"],
            payload=payload if isinstance(payload, dict) else {},
            state=record.get("state") or "pending",
            attempts=int(record.get("attempts") or 0),
            last_error=record.get("last_error"),
        )
