"""Adoption application registry."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Iterable

from .config import (
    APPLICATION_STATUS_PENDING,
    DOG_STATUS_ADOPTED,
    UNKNOWN_DOG_NAME,
    allow_applications_for_adopted_dogs,
)
from .contact_utils import normalize_email
from .db import ensure_schema, fetch_record, fetch_records, get_connection
from .dogs import get_dog
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Application, ApplicationTask, utc_now
from .outbox import enqueue_tasks

logger = logging.getLogger(__name__)

REQUIRED_APPLICATION_FIELDS = (
    "dogId",
    "shelter",
    "name",
    "email",
    "phone",
    "address",
    "livingSpace",
    "hasKids",
)
APPLICATION_COLUMNS = """
    a.application_id,
    a.dog_id,
    a.shelter,
    a.adopter_id,
    a.status,
    a.adopter_name,
    a.adopter_email,
    a.adopter_phone,
    a.adopter_address,
    a.experience,
    a.living_space,
    a.has_kids,
    a.version,
    a.created_at,
    a.updated_at
"""
_YES = {"yes", "true", "1", "y"}
_NO = {"no", "false", "0", "n"}


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_has_kids(value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _YES:
        return True
    if text in _NO:
        return False
    raise ValidationError("hasKids must be yes or no")


def build_application(attrs: dict, adopter_id: str) -> Application:
    """Validate a submission and return an unsaved pending ``Application``."""
    if _is_missing(adopter_id):
        raise ValidationError("Missing required field: adopterId")
    for field_name in REQUIRED_APPLICATION_FIELDS:
        if _is_missing(attrs.get(field_name)):
            raise ValidationError(f"Missing required field: {field_name}")

    # Contact details are stored as given; channels validate them at send time.
    email = normalize_email(attrs["email"])
    phone = str(attrs["phone"]).strip()

    now = utc_now()
    return Application(
        application_id=str(uuid.uuid4()),
        dog_id=str(attrs["dogId"]).strip(),
        shelter=str(attrs["shelter"]).strip(),
        adopter_id=str(adopter_id).strip(),
        adopter_name=" ".join(str(attrs["name"]).split()),
        adopter_email=email,
        adopter_phone=phone,
        adopter_address=str(attrs["address"]).strip(),
        living_space=str(attrs["livingSpace"]).strip(),
        has_kids=parse_has_kids(attrs["hasKids"]),
        experience=str(attrs.get("experience") or "").strip(),
        status=APPLICATION_STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )


def _check_dog_accepts_applications(dog_id: str) -> None:
    dog = get_dog(dog_id)
    if dog.status == DOG_STATUS_ADOPTED:
        raise ConflictError(f"{dog.display_name} has already been adopted")


def submit_application(
    attrs: dict,
    adopter_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> str:
    """Persist a new pending application and return its ``applicationId``.

    The referenced dog is not checked unless
    ``PUPPER_ALLOW_APPLICATIONS_FOR_ADOPTED`` is turned off.
    """
    application = build_application(attrs, adopter_id)
    if not allow_applications_for_adopted_dogs():
        _check_dog_accepts_applications(application.dog_id)

    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO applications (
                    application_id,
                    dog_id,
                    shelter,
                    adopter_id,
                    status,
                    adopter_name,
                    adopter_email,
                    adopter_phone,
                    adopter_address,
                    experience,
                    living_space,
                    has_kids,
                    version,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s);
                """,
                (
                    application.application_id,
                    application.dog_id,
                    application.shelter,
                    application.adopter_id,
                    application.status,
                    application.adopter_name,
                    application.adopter_email,
                    application.adopter_phone,
                    application.adopter_address,
                    application.experience,
                    application.living_space,
                    application.has_kids,
                    application.version,
                    application.created_at,
                    application.updated_at,
                ),
            )
        conn.commit()
    logger.info(
        f"Adoption application {application.application_id} created for dog {application.dog_id}"
    )
    return application.application_id


def get_application(
    application_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> Application:
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT {APPLICATION_COLUMNS}
                FROM applications AS a
                WHERE a.application_id = %s;
                """,
                (application_id,),
            )
            record = fetch_record(cur)
    if not record:
        raise NotFoundError("Application not found")
    return Application.from_record(record)


def _with_dog_fields(records: Iterable[dict]) -> list[dict]:
    projected: list[dict] = []
    for record in records:
        item = Application.from_record(record).to_dict()
        item["dogName"] = record.get("dog_name") or UNKNOWN_DOG_NAME
        if "dog_created_by" in record:
            item["dogCreatedBy"] = record.get("dog_created_by") or "unknown"
        projected.append(item)
    return projected


def get_applications(
    adopter_id: str | None = None,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> list[dict]:
    """List applications with ``dogName`` joined in, optionally for one adopter."""
    adopter = (adopter_id or "").strip()
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT
                    {APPLICATION_COLUMNS},
                    COALESCE(NULLIF(d.name, ''), NULLIF(d.shelter, ''), %s) AS dog_name
                FROM applications AS a
                LEFT JOIN dogs AS d
                  ON d.dog_id = a.dog_id
                WHERE (%s = '' OR a.adopter_id = %s)
                ORDER BY a.created_at DESC, a.application_id;
                """,
                (UNKNOWN_DOG_NAME, adopter, adopter),
            )
            records = fetch_records(cur)
    return _with_dog_fields(records)


def get_applications_for_adopter(adopter_id: str, **kwargs) -> list[dict]:
    if _is_missing(adopter_id):
        raise ValidationError("Adopter ID is required")
    return get_applications(adopter_id, **kwargs)


def get_applications_for_shelter_owner(
    owner_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> list[dict]:
    """List applications for dogs created by ``owner_id``."""
    if _is_missing(owner_id):
        raise ValidationError("User ID is required")
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT
                    {APPLICATION_COLUMNS},
                    COALESCE(NULLIF(d.name, ''), NULLIF(d.shelter, ''), %s) AS dog_name,
                    d.created_by AS dog_created_by
                FROM applications AS a
                JOIN dogs AS d
                  ON d.dog_id = a.dog_id
                WHERE d.created_by = %s
                ORDER BY a.created_at DESC, a.application_id;
                """,
                (UNKNOWN_DOG_NAME, owner_id),
            )
            records = fetch_records(cur)
    logger.info(f"Retrieved {len(records)} applications for shelter user {owner_id}")
    return _with_dog_fields(records)


def record_decision(
    application_id: str,
    new_status: str,
    expected_version: int,
    tasks: Iterable[tuple[str, dict]],
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> tuple[Application, list[ApplicationTask]]:
    """Write a decision and its follow-up tasks in a single transaction.

    The update only applies to a still-pending row at ``expected_version``.

    Raises:
        ConflictError: The application was decided or modified meanwhile.
    """
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                UPDATE applications AS a
                SET status = %s,
                    version = a.version + 1,
                    updated_at = %s
                WHERE a.application_id = %s
                  AND a.status = %s
                  AND a.version = %s
                RETURNING {APPLICATION_COLUMNS};
                """,
                (
                    new_status,
                    utc_now(),
                    application_id,
                    APPLICATION_STATUS_PENDING,
                    expected_version,
                ),
            )
            record = fetch_record(cur)
            if not record:
                raise ConflictError(
                    "Application was updated by someone else; reload and try again"
                )
            created_tasks = enqueue_tasks(cur, application_id, tasks)
        conn.commit()
    return Application.from_record(record), created_tasks


def update_status(
    application_id: str,
    new_status: str,
    actor_id: str,
    expected_version: int | None = None,
) -> dict:
    """Decide an application; see ``pupper.orchestration.transition``."""
    from .orchestration import transition

    return transition(application_id, new_status, actor_id, expected_version)
