import pytest

import pupper.db as db
import pupper.healthcheck as healthcheck


class DummyCursor:
    def __init__(self):
        self.executed = []

    def execute(self, query, params=None):
        self.executed.append((query, params))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class DummyConn:
    def __init__(self):
        self.cursor_obj = DummyCursor()
        self.commits = 0

    def cursor(self):
        return self.cursor_obj

    def commit(self):
        self.commits += 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def test_get_pg_config_reads_env(monkeypatch):
    monkeypatch.setenv("PGHOST", "db.internal")
    monkeypatch.setenv("PGPORT", "6543")
    monkeypatch.delenv("PGDATABASE", raising=False)
    cfg = db._get_pg_config()
    assert cfg["host"] == "db.internal"
    assert cfg["port"] == 6543
    assert cfg["dbname"] == "pupper"


def test_ensure_schema_creates_tables_and_indexes():
    conn = DummyConn()
    db.ensure_schema(conn)

    sql = "\n".join(query for query, _ in conn.cursor_obj.executed)
    for table in ("dogs", "votes", "applications", "application_tasks"):
        assert f"CREATE TABLE IF NOT EXISTS {table}" in sql
    assert "idx_dogs_state" in sql
    assert "PRIMARY KEY (user_id, dog_id)" in sql
    assert "ON DELETE CASCADE" in sql
    assert conn.commits == 1


def test_get_connection_falls_back_from_docker_host(monkeypatch):
    if db.psycopg is None:
        pytest.skip("psycopg not installed")
    attempts = []

    def fake_connect(**cfg):
        attempts.append(cfg["host"])
        if cfg["host"] == "postgres":
            raise db.psycopg.OperationalError("could not translate host name: Name or service not known")
        return "conn"

    monkeypatch.setenv("PGHOST", "postgres")
    monkeypatch.setattr(db.psycopg, "connect", fake_connect)
    assert db.get_connection() == "conn"
    assert attempts == ["postgres", "localhost"]


def test_healthcheck_runs_schema_check(monkeypatch, capsys):
    conn = DummyConn()
    monkeypatch.setattr(healthcheck, "get_connection", lambda: conn)
    monkeypatch.setattr(healthcheck, "load_dotenv", lambda: None)

    healthcheck.main()

    assert capsys.readouterr().out.strip() == "OK"
    assert conn.commits == 1
