from __future__ import annotations

import os

try:
    import psycopg
    from psycopg.types.json import Json
except ModuleNotFoundError as exc:  # Optional dependency for DB features
    psycopg = None
    Json = None
    _PSYCOPG_IMPORT_ERROR = exc
else:
    _PSYCOPG_IMPORT_ERROR = None


def _require_psycopg() -> None:
    if psycopg is None:
        raise ModuleNotFoundError(
            "psycopg is required for database operations. Install it to enable storage."
        ) from _PSYCOPG_IMPORT_ERROR


def _get_pg_config() -> dict[str, str | int]:
    return {
        "host": os.environ.get("PGHOST", "localhost"),
        "port": int(os.environ.get("PGPORT", "5432")),
        "user": os.environ.get("PGUSER", "postgres"),
        "password": os.environ.get("PGPASSWORD", "postgres"),
        "dbname": os.environ.get("PGDATABASE", "pupper"),
    }


def get_connection() -> "psycopg.Connection":
    _require_psycopg()
    cfg = _get_pg_config()
    try:
        return psycopg.connect(**cfg)
    except psycopg.OperationalError as exc:
        message = str(exc).lower()
        fallback_hosts: list[str] = []

        if cfg["host"] == "postgres" and (
            "resolve host" in message
            or "getaddrinfo" in message
            or "name or service not known" in message
        ):
            fallback_hosts = ["localhost", "127.0.0.1"]

        candidates: list[dict[str, str | int]] = [
            {**cfg, "host": host} for host in fallback_hosts if host != cfg["host"]
        ]

        seen: set[tuple[str, int]] = set()
        for candidate in candidates:
            key = (str(candidate["host"]), int(candidate["port"]))
            if key in seen:
                continue
            seen.add(key)
            try:
                return psycopg.connect(**candidate)
            except psycopg.OperationalError:
                continue

        raise


def to_json(value: dict):
    """Wrap a dict for a JSONB parameter."""
    _require_psycopg()
    return Json(value)


def fetch_records(cur) -> list[dict]:
    """Return all remaining rows of a cursor as column-keyed dicts."""
    rows = cur.fetchall()
    columns = [col.name for col in cur.description] if rows else []
    return [dict(zip(columns, row)) for row in rows]


def fetch_record(cur) -> dict | None:
    row = cur.fetchone()
    if not row:
        return None
    columns = [col.name for col in cur.description]
    return dict(zip(columns, row))


def ensure_schema(conn) -> None:
    """Create tables and indexes used by the registries and the outbox."""
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS dogs (
                dog_id TEXT PRIMARY KEY,
                shelter TEXT NOT NULL,
                city TEXT NOT NULL,
                state TEXT NOT NULL,
                name TEXT NOT NULL,
                species TEXT NOT NULL,
                description TEXT NOT NULL,
                birthday DATE NOT NULL,
                weight NUMERIC NOT NULL CHECK (weight > 0),
                color TEXT NOT NULL,
                created_by TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'available'
                    CHECK (status IN ('available', 'adopted')),
                entry_date TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ,
                original_image_url TEXT,
                resized_image_url TEXT,
                thumbnail_url TEXT
            );
            """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_dogs_state
            ON dogs (state);
            """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_dogs_created_by
            ON dogs (created_by);
            """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS votes (
                user_id TEXT NOT NULL,
                dog_id TEXT NOT NULL,
                vote_type TEXT NOT NULL CHECK (vote_type IN ('wag', 'growl')),
                voted_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (user_id, dog_id)
            );
            """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS applications (
                application_id TEXT PRIMARY KEY,
                dog_id TEXT NOT NULL,
                shelter TEXT NOT NULL,
                adopter_id TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'rejected')),
                adopter_name TEXT NOT NULL,
                adopter_email TEXT NOT NULL,
                adopter_phone TEXT NOT NULL,
                adopter_address TEXT NOT NULL,
                experience TEXT NOT NULL DEFAULT '',
                living_space TEXT NOT NULL,
                has_kids BOOLEAN NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            );
            """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_applications_adopter
            ON applications (adopter_id, created_at DESC);
            """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_applications_dog
            ON applications (dog_id);
            """)
        cur.execute("""
            CREATE TABLE IF NOT EXISTS application_tasks (
                task_id BIGSERIAL PRIMARY KEY,
                application_id TEXT NOT NULL
                    REFERENCES applications(application_id) ON DELETE CASCADE,
                kind TEXT NOT NULL,
                payload JSONB NOT NULL DEFAULT '{}'::jsonb,
                state TEXT NOT NULL DEFAULT 'pending'
                    CHECK (state IN ('pending', 'running', 'done', 'failed')),
                attempts INTEGER NOT NULL DEFAULT 0,
                last_error TEXT,
                claimed_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL
            );
            """)
        cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_application_tasks_pending
            ON application_tasks (state, created_at)
            WHERE state IN ('pending', 'running');
            """)
    conn.commit()
