import pytest

from pupper.auth import bearer_token, decode_actor_token, encode_actor_token


@pytest.fixture(autouse=True)
def _secret(monkeypatch):
    monkeypatch.setenv("PUPPER_AUTH_SECRET", "unit-test-secret")


def test_actor_token_round_trip():
    token = encode_actor_token("shelter.one@example.com")
    assert decode_actor_token(token) == "shelter.one@example.com"


def test_actor_token_rejects_tampering(monkeypatch):
    token = encode_actor_token("shelter-1")
    actor, signature = token.rsplit(".", 1)
    assert decode_actor_token(f"shelter-2.{signature}") is None
    assert decode_actor_token(f"{actor}.{'0' * len(signature)}") is None
    assert decode_actor_token("no-signature") is None
    assert decode_actor_token(None) is None

    monkeypatch.setenv("PUPPER_AUTH_SECRET", "rotated")
    assert decode_actor_token(token) is None


def test_actor_token_rejects_oversized_actor():
    assert decode_actor_token(encode_actor_token("x" * 201)) is None


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc.def") == "abc.def"
    assert bearer_token("bearer   abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None
