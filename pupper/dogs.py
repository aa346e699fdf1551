"""Dog registry: listing creation, filtered reads, owner deletes and status."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Callable, Iterable

from .config import ACCEPTED_SPECIES, DOG_STATUS_ADOPTED, DOG_STATUSES
from .db import ensure_schema, fetch_record, fetch_records, get_connection
from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import Dog, utc_now

logger = logging.getLogger(__name__)

REQUIRED_DOG_FIELDS = (
    "shelter",
    "city",
    "state",
    "name",
    "species",
    "description",
    "birthday",
    "weight",
    "color",
)
DOG_COLUMNS = """
    dog_id,
    shelter,
    city,
    state,
    name,
    species,
    description,
    birthday,
    weight,
    color,
    created_by,
    status,
    entry_date,
    created_at,
    updated_at,
    original_image_url,
    resized_image_url,
    thumbnail_url
"""


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _clean_text(value) -> str:
    return " ".join(str(value).split())


def parse_birthday(value) -> date:
    """Parse an ISO date (or datetime) into a date that is not in the future."""
    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = date.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00")).date()
            except ValueError as exc:
                raise ValidationError("birthday must be an ISO date (YYYY-MM-DD)") from exc
    if parsed > utc_now().date():
        raise ValidationError("birthday cannot be in the future")
    return parsed


def parse_weight(value) -> float:
    if isinstance(value, bool):
        raise ValidationError("weight must be a positive number")
    try:
        weight = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("weight must be a positive number") from exc
    if not weight > 0 or weight == float("inf"):
        raise ValidationError("weight must be a positive number")
    return weight


def _parse_entry_date(value) -> datetime | None:
    if _is_blank(value):
        return None
    try:
        return datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError("entryDate must be an ISO timestamp") from exc


def build_dog(attrs: dict, actor_id: str) -> Dog:
    """Validate creation attributes and return an unsaved ``Dog``.

    Raises:
        ValidationError: A required field is missing, the species is not the
            accepted one, or a value is malformed.
    """
    if _is_blank(actor_id):
        raise ValidationError("Missing required field: createdBy")
    for field_name in REQUIRED_DOG_FIELDS:
        if _is_blank(attrs.get(field_name)):
            raise ValidationError(f"Missing required field: {field_name}")

    species = _clean_text(attrs["species"])
    if species.lower() != ACCEPTED_SPECIES.lower():
        raise ValidationError("Only Labrador Retrievers are allowed")

    now = utc_now()
    return Dog(
        dog_id=str(uuid.uuid4()),
        shelter=_clean_text(attrs["shelter"]),
        city=_clean_text(attrs["city"]),
        state=_clean_text(attrs["state"]),
        name=_clean_text(attrs["name"]),
        species=ACCEPTED_SPECIES,
        description=str(attrs["description"]).strip(),
        birthday=parse_birthday(attrs["birthday"]),
        weight=parse_weight(attrs["weight"]),
        color=_clean_text(attrs["color"]),
        created_by=str(actor_id).strip(),
        entry_date=_parse_entry_date(attrs.get("entryDate")) or now,
        created_at=now,
        updated_at=now,
    )


def create_dog(
    attrs: dict,
    actor_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> str:
    """Validate and persist a new dog listing, returning its ``dogId``."""
    dog = build_dog(attrs, actor_id)
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO dogs (
                    dog_id,
                    shelter,
                    city,
                    state,
                    name,
                    species,
                    description,
                    birthday,
                    weight,
                    color,
                    created_by,
                    status,
                    entry_date,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s);
                """,
                (
                    dog.dog_id,
                    dog.shelter,
                    dog.city,
                    dog.state,
                    dog.name,
                    dog.species,
                    dog.description,
                    dog.birthday,
                    dog.weight,
                    dog.color,
                    dog.created_by,
                    dog.status,
                    dog.entry_date,
                    dog.created_at,
                    dog.updated_at,
                ),
            )
        conn.commit()
    logger.info(f"Dog {dog.dog_id} created by {dog.created_by}")
    return dog.dog_id


def _optional_number(filters: dict, key: str) -> float | None:
    raw = filters.get(key)
    if _is_blank(raw):
        return None
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{key} must be a number") from exc


def filter_dogs(
    dogs: Iterable[Dog],
    color: str | None = None,
    min_weight: float | None = None,
    max_weight: float | None = None,
    min_age: float | None = None,
    max_age: float | None = None,
    today: date | None = None,
) -> list[Dog]:
    """Apply the non-indexed filters; weight and age bounds are inclusive."""
    wanted_color = (color or "").strip().lower()
    matched: list[Dog] = []
    for dog in dogs:
        if wanted_color and dog.color.lower() != wanted_color:
            continue
        if min_weight is not None and dog.weight < min_weight:
            continue
        if max_weight is not None and dog.weight > max_weight:
            continue
        if min_age is not None or max_age is not None:
            age = dog.age_years(today)
            if min_age is not None and age < min_age:
                continue
            if max_age is not None and age > max_age:
                continue
        matched.append(dog)
    return matched


def get_dogs(
    filters: dict | None = None,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> list[Dog]:
    """Return dogs matching optional state/color/weight/age filters.

    ``state`` is resolved by the ``idx_dogs_state`` index; the remaining
    filters run as predicates over the fetched rows. Age is computed from
    ``birthday`` at query time.
    """
    filters = filters or {}
    state = (filters.get("state") or "").strip()
    min_weight = _optional_number(filters, "minWeight")
    max_weight = _optional_number(filters, "maxWeight")
    min_age = _optional_number(filters, "minAge")
    max_age = _optional_number(filters, "maxAge")

    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            if state:
                cur.execute(
                    f"""
                    SELECT {DOG_COLUMNS}
                    FROM dogs
                    WHERE state = %s
                      AND lower(species) = lower(%s)
                    ORDER BY created_at DESC, dog_id;
                    """,
                    (state, ACCEPTED_SPECIES),
                )
            else:
                cur.execute(
                    f"""
                    SELECT {DOG_COLUMNS}
                    FROM dogs
                    WHERE lower(species) = lower(%s)
                    ORDER BY created_at DESC, dog_id;
                    """,
                    (ACCEPTED_SPECIES,),
                )
            records = fetch_records(cur)

    dogs = [Dog.from_record(record) for record in records]
    return filter_dogs(
        dogs,
        color=filters.get("color"),
        min_weight=min_weight,
        max_weight=max_weight,
        min_age=min_age,
        max_age=max_age,
    )


def get_dog(
    dog_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> Dog:
    """Load one dog by id.

    Raises:
        NotFoundError: No dog has this id.
    """
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {DOG_COLUMNS}
                FROM dogs
                WHERE dog_id = %s;
                """,
                (dog_id,),
            )
            record = fetch_record(cur)
    if not record:
        raise NotFoundError("Dog not found")
    return Dog.from_record(record)


def delete_dog(
    dog_id: str,
    actor_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> None:
    """Delete a dog listing on behalf of its creator."""
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT created_by
                FROM dogs
                WHERE dog_id = %s
                FOR UPDATE;
                """,
                (dog_id,),
            )
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Dog not found")
            if row[0] != actor_id:
                raise ForbiddenError("You can only delete dogs you posted")
            cur.execute(
                """
                DELETE FROM dogs
                WHERE dog_id = %s;
                """,
                (dog_id,),
            )
        conn.commit()
    logger.info(f"Dog {dog_id} deleted by user {actor_id}")


def set_dog_status(
    dog_id: str,
    status: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> bool:
    """Idempotently move a dog to ``status``.

    Only ``available -> adopted`` is a real transition; repeating it is a
    no-op on ``status`` that still refreshes ``updated_at``.

    Returns:
        True when a dog row was updated, False when the dog no longer exists.
    """
    if status not in DOG_STATUSES:
        raise ValidationError(f"Unknown dog status: {status!r}")
    if status != DOG_STATUS_ADOPTED:
        raise ValidationError("Dog status can only move to adopted")
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE dogs
                SET status = %s,
                    updated_at = %s
                WHERE dog_id = %s
                RETURNING dog_id;
                """,
                (status, utc_now(), dog_id),
            )
            updated = cur.fetchone() is not None
        conn.commit()
    if updated:
        logger.info(f"Dog {dog_id} status set to {status}")
    else:
        logger.warning(f"Dog {dog_id} not found while setting status to {status}")
    return updated
