"""Per-user wag/growl votes on dogs."""

from __future__ import annotations

import logging
from typing import Callable

from .config import VOTE_TYPES
from .db import ensure_schema, get_connection
from .errors import ValidationError
from .models import Vote, utc_now

logger = logging.getLogger(__name__)


def _require_ids(user_id: str, dog_id: str) -> None:
    if not str(user_id or "").strip():
        raise ValidationError("User ID is required")
    if not str(dog_id or "").strip():
        raise ValidationError("Dog ID is required")


def cast_vote(
    user_id: str,
    dog_id: str,
    vote_type: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> Vote:
    """Record a vote, replacing any earlier vote by the same user on the dog."""
    _require_ids(user_id, dog_id)
    if vote_type not in VOTE_TYPES:
        raise ValidationError('Vote type must be "wag" or "growl"')
    vote = Vote(user_id=user_id, dog_id=dog_id, vote_type=vote_type, timestamp=utc_now())
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO votes (user_id, dog_id, vote_type, voted_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (user_id, dog_id)
                DO UPDATE SET
                    vote_type = EXCLUDED.vote_type,
                    voted_at = EXCLUDED.voted_at;
                """,
                (vote.user_id, vote.dog_id, vote.vote_type, vote.timestamp),
            )
        conn.commit()
    logger.info(f"User {user_id} voted {vote_type} on dog {dog_id}")
    return vote


def remove_vote(
    user_id: str,
    dog_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> bool:
    """Delete a user's vote on a dog; a missing vote is not an error.

    Returns:
        True when a vote existed and was removed.
    """
    _require_ids(user_id, dog_id)
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                DELETE FROM votes
                WHERE user_id = %s
                  AND dog_id = %s
                RETURNING dog_id;
                """,
                (user_id, dog_id),
            )
            removed = cur.fetchone() is not None
        conn.commit()
    return removed


def get_votes_for_user(
    user_id: str,
    *,
    connection_factory: Callable = get_connection,
    ensure_schema_fn: Callable = ensure_schema,
) -> dict[str, str]:
    """Return ``{dogId: voteType}`` for every vote the user has cast."""
    with connection_factory() as conn:
        ensure_schema_fn(conn)
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT dog_id, vote_type
                FROM votes
                WHERE user_id = %s
                ORDER BY voted_at DESC;
                """,
                (user_id,),
            )
            rows = cur.fetchall()
    return {str(dog_id): str(vote_type) for dog_id, vote_type in rows}
