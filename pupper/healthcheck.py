from __future__ import annotations

from dotenv import load_dotenv

from .db import ensure_schema, get_connection


def check_database() -> None:
    """Connect and make sure the schema exists; raises when unreachable."""
    with get_connection() as conn:
        ensure_schema(conn)


def main() -> None:
    load_dotenv()
    check_database()
    print("OK")


if __name__ == "__main__":
    main()
