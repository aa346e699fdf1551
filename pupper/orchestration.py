"""Application status transitions and their follow-up side effects.

A decision is committed together with its outbox tasks in one transaction.
The tasks (adopter email, adopter SMS, marking the dog adopted) are created
claimed by the committing process and run inline on a best-effort basis;
whatever fails goes back to pending for ``pupper-worker`` to retry, and a
claim abandoned by a crash is picked up once it goes stale. Task failures
never reach the caller.
"""

from __future__ import annotations

import logging
from typing import Iterable

from tqdm import tqdm

from .applications import get_application, record_decision
from .config import (
    APPLICATION_DECISIONS,
    APPLICATION_STATUS_APPROVED,
    DEFAULT_WORKER_BATCH,
    DOG_STATUS_ADOPTED,
    UNKNOWN_DOG_NAME,
    enforce_dog_ownership,
    task_claim_timeout,
    task_max_attempts,
)
from .contact_utils import sanitize_email, sanitize_phone
from .dogs import get_dog, set_dog_status
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import Application, ApplicationTask, Dog
from .notifications import StatusNotice, enabled_channels, notify
from .outbox import (
    TASK_MARK_DOG_ADOPTED,
    TASK_NOTIFY_EMAIL,
    TASK_NOTIFY_SMS,
    claim_pending_tasks,
    record_task_failure,
    record_task_success,
)

logger = logging.getLogger(__name__)

NOTIFY_TASK_CHANNELS = {
    TASK_NOTIFY_EMAIL: "email",
    TASK_NOTIFY_SMS: "sms",
}


def _load_owned_dog(application: Application, actor_id: str) -> Dog | None:
    """Return the application's dog if ``actor_id`` listed it.

    An application whose dog was deleted has no owner left to check; any
    actor may decide it, and None is returned.
    """
    try:
        dog = get_dog(application.dog_id)
    except NotFoundError:
        logger.warning(
            f"Dog {application.dog_id} for application {application.application_id} "
            f"no longer exists; decision by user {actor_id} is not ownership-checked"
        )
        return None
    if dog.created_by != actor_id:
        raise ForbiddenError(
            "Only the shelter that listed this dog can decide its applications"
        )
    return dog


def plan_follow_ups(
    application: Application, new_status: str, dog_name: str | None = None
) -> list[tuple[str, dict]]:
    """Return the outbox tasks a decision needs, in execution order."""
    notice = StatusNotice(
        application_id=application.application_id,
        status=new_status,
        applicant_name=application.adopter_name,
        dog_name=dog_name or "",
        shelter=application.shelter,
        email=application.adopter_email,
        phone=application.adopter_phone,
    )
    payload = {**notice.as_payload(), "dogId": application.dog_id}
    channels = enabled_channels()

    tasks: list[tuple[str, dict]] = []
    if "email" in channels and sanitize_email(application.adopter_email):
        tasks.append((TASK_NOTIFY_EMAIL, payload))
    if "sms" in channels:
        if sanitize_phone(application.adopter_phone):
            tasks.append((TASK_NOTIFY_SMS, payload))
        else:
            logger.info(
                f"Application {application.application_id}: phone on file cannot "
                "receive SMS; skipping text notification"
            )
    if new_status == APPLICATION_STATUS_APPROVED:
        tasks.append((TASK_MARK_DOG_ADOPTED, {"dogId": application.dog_id}))
    return tasks


def _dog_display_name(dog_id: str | None) -> str:
    """Best-effort dog name lookup for notifications."""
    if not dog_id:
        return UNKNOWN_DOG_NAME
    try:
        return get_dog(dog_id).display_name
    except Exception as exc:
        logger.warning(f"Could not look up dog {dog_id} for notification: {exc}")
        return UNKNOWN_DOG_NAME


def execute_task(task: ApplicationTask) -> None:
    """Perform one follow-up task; raises on failure."""
    payload = task.payload
    if task.kind in NOTIFY_TASK_CHANNELS:
        dog_name = payload.get("dogName") or _dog_display_name(payload.get("dogId"))
        notify(NOTIFY_TASK_CHANNELS[task.kind], StatusNotice.from_payload(payload, dog_name))
        return
    if task.kind == TASK_MARK_DOG_ADOPTED:
        dog_id = str(payload.get("dogId") or "")
        if not set_dog_status(dog_id, DOG_STATUS_ADOPTED):
            logger.warning(
                f"Dog {dog_id} for application {task.application_id} no longer exists"
            )
        return
    raise ValueError(f"Unknown task kind='{task.kind}'")


def run_task(task: ApplicationTask, max_attempts: int) -> str:
    """Execute a task and record the outcome.

    Returns:
        The resulting task state: ``done``, ``pending`` or ``failed``.
    """
    try:
        execute_task(task)
    except Exception as exc:
        logger.warning(
            f"Task {task.task_id} ({task.kind}) for application "
            f"{task.application_id} failed: {exc}"
        )
        try:
            return record_task_failure(task.task_id, str(exc), max_attempts)
        except Exception as record_exc:
            logger.warning(f"Could not record failure of task {task.task_id}: {record_exc}")
            return "pending"

    try:
        record_task_success(task.task_id)
    except Exception as exc:
        logger.warning(f"Task {task.task_id} ran but could not be marked done: {exc}")
        return "pending"
    logger.info(f"Task {task.task_id} ({task.kind}) for application {task.application_id} done")
    return "done"


def run_tasks(
    tasks: Iterable[ApplicationTask], max_attempts: int | None = None
) -> dict[str, int]:
    """Run tasks in order and count the resulting states."""
    attempts = max_attempts or task_max_attempts()
    counts = {"done": 0, "pending": 0, "failed": 0}
    for task in tasks:
        state = run_task(task, attempts)
        counts[state] = counts.get(state, 0) + 1
    return counts


def run_pending_tasks(
    limit: int = DEFAULT_WORKER_BATCH, max_attempts: int | None = None
) -> dict[str, int]:
    """Claim and retry runnable outbox tasks, as the worker does on each pass.

    Tasks enqueued by ``transition`` are claimed by it until their claim goes
    stale, so a pass never re-runs a task that is still being run inline.
    """
    tasks = claim_pending_tasks(limit, task_claim_timeout())
    if not tasks:
        logger.info("No pending tasks.")
        return {"done": 0, "pending": 0, "failed": 0}
    logger.info(f"Retrying {len(tasks)} pending task(s).")
    counts = run_tasks(tqdm(tasks, desc="Running application tasks"), max_attempts)
    logger.info(
        f"Task pass complete. done={counts['done']} pending={counts['pending']} "
        f"failed={counts['failed']}"
    )
    return counts


def transition(
    application_id: str,
    new_status: str,
    actor_id: str,
    expected_version: int | None = None,
) -> dict:
    """Approve or reject a pending application on behalf of ``actor_id``.

    Validation, ownership and concurrency checks fail fast with no writes.
    Once the decision is committed the call succeeds, whatever happens to
    the follow-up tasks.

    Raises:
        NotFoundError: The application does not exist.
        ValidationError: ``new_status`` is not a decision, or no actor given.
        ConflictError: Already decided, or ``expected_version`` is stale.
        ForbiddenError: Ownership is enforced and the actor does not own the dog.
    """
    application = get_application(application_id)
    if new_status not in APPLICATION_DECISIONS:
        raise ValidationError('Status must be "approved" or "rejected"')
    if not str(actor_id or "").strip():
        raise ValidationError("User ID is required")
    if application.is_terminal:
        raise ConflictError(f"Application is already {application.status}")
    if expected_version is not None and expected_version != application.version:
        raise ConflictError("Application was updated by someone else; reload and try again")

    dog_name = None
    if enforce_dog_ownership():
        dog = _load_owned_dog(application, actor_id)
        dog_name = dog.display_name if dog else UNKNOWN_DOG_NAME

    _decided, tasks = record_decision(
        application_id,
        new_status,
        application.version,
        plan_follow_ups(application, new_status, dog_name),
    )
    logger.info(f"Application {application_id} {new_status} by user {actor_id}")

    try:
        counts = run_tasks(tasks)
    except Exception as exc:
        logger.warning(f"Follow-up tasks for application {application_id} deferred: {exc}")
    else:
        if counts["pending"] or counts["failed"]:
            logger.warning(
                f"Application {application_id}: {counts['pending']} follow-up task(s) "
                f"left for retry, {counts['failed']} failed"
            )

    return {
        "message": f"Application {new_status} successfully",
        "applicationId": application_id,
        "status": new_status,
    }
