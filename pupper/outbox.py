"""Durable follow-up tasks written alongside application status changes.

A task is ``pending`` until someone claims it. A claimed task is ``running``
with ``claimed_at`` set, and then ends as ``done``, goes back to
``pending`` after a failed attempt, or is parked as ``failed``. A
``running`` task whose claim is older than the claim timeout is treated as
abandoned and can be claimed again.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Iterable

from .db import ensure_schema, fetch_records, get_connection, to_json
from .models import ApplicationTask, utc_now

TASK_NOTIFY_EMAIL = "notify_email"
TASK_NOTIFY_SMS = "notify_sms"
TASK_MARK_DOG_ADOPTED = "mark_dog_adopted"
TASK_KINDS = (TASK_NOTIFY_EMAIL, TASK_NOTIFY_SMS, TASK_MARK_DOG_ADOPTED)

TASK_STATE_PENDING = "pending"
TASK_STATE_RUNNING = "running"
TASK_STATE_DONE = "done"
TASK_STATE_FAILED = "failed"

MAX_ERROR_LENGTH = 1000
TASK_COLUMNS = "task_id, application_id, kind, payload, state, attempts, last_error"


def enqueue_tasks(
    cur, application_id: str, tasks: Iterable[tuple[str, dict]]
) -> list[ApplicationTask]:
    """Insert tasks using an open cursor so they commit with the caller's write.

    The rows are created already claimed by the caller, which is expected
    to run them right after committing. Workers leave them alone until the
    claim goes stale.
    """
    created: list[ApplicationTask] = []
    now = utc_now()
    for kind, payload in tasks:
        if kind not in TASK_KINDS:
            raise ValueError(f"Unknown task kind='{kind}'. Options: {sorted(TASK_KINDS)}")
        cur.execute(
            f"""
            INSERT INTO application_tasks (
                application_id,
                kind,
                payload,
                state,
                attempts,
                claimed_at,
                created_at,
                updated_at
            )
            VALUES (%s, %s, %s, %s, 0, %s, %s, %s)
            RETURNING {TASK_COLUMNS};
            """,
            (application_id, kind, to_json(payload), TASK_STATE_RUNNING, now, now, now),
        )
        row = cur.fetchone()
        columns = [col.name for col in cur.description]
        created.append(ApplicationTask.from_record(dict(zip(columns, row))))
    return created


def claim_pending_tasks(
    limit: int,
    claim_timeout: float,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> list[ApplicationTask]:
    """Atomically claim up to ``limit`` runnable tasks, oldest first.

    Runnable means ``pending``, or ``running`` with a claim older than
    ``claim_timeout`` seconds. Rows locked by a concurrent claimer are
    skipped, so two workers never claim the same task.
    """
    now = utc_now()
    stale_before = now - timedelta(seconds=claim_timeout)
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                f"""
                UPDATE application_tasks
                SET state = %s,
                    claimed_at = %s,
                    updated_at = %s
                WHERE task_id IN (
                    SELECT task_id
                    FROM application_tasks
                    WHERE state = %s
                       OR (state = %s AND claimed_at < %s)
                    ORDER BY created_at ASC, task_id ASC
                    LIMIT %s
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING {TASK_COLUMNS};
                """,
                (
                    TASK_STATE_RUNNING,
                    now,
                    now,
                    TASK_STATE_PENDING,
                    TASK_STATE_RUNNING,
                    stale_before,
                    max(1, int(limit)),
                ),
            )
            records = fetch_records(cur)
        conn.commit()
    tasks = [ApplicationTask.from_record(record) for record in records]
    return sorted(tasks, key=lambda task: task.task_id)


def record_task_success(
    task_id: int,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> None:
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE application_tasks
                SET state = %s,
                    attempts = attempts + 1,
                    last_error = NULL,
                    claimed_at = NULL,
                    updated_at = %s
                WHERE task_id = %s;
                """,
                (TASK_STATE_DONE, utc_now(), task_id),
            )
        conn.commit()


def record_task_failure(
    task_id: int,
    error: str,
    max_attempts: int,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> str:
    """Count a failed attempt and release the claim.

    The task goes back to ``pending``, or is parked as ``failed`` once
    ``max_attempts`` is reached.

    Returns:
        The task state after the update.
    """
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                UPDATE application_tasks
                SET attempts = attempts + 1,
                    last_error = %s,
                    claimed_at = NULL,
                    state = CASE
                        WHEN attempts + 1 >= %s THEN %s
                        ELSE %s
                    END,
                    updated_at = %s
                WHERE task_id = %s
                RETURNING state;
                """,
                (
                    str(error)[:MAX_ERROR_LENGTH],
                    max_attempts,
                    TASK_STATE_FAILED,
                    TASK_STATE_PENDING,
                    utc_now(),
                    task_id,
                ),
            )
            row = cur.fetchone()
        conn.commit()
    return str(row[0]) if row else TASK_STATE_FAILED
