"""JSON HTTP API for dogs, votes and adoption applications.

Every request is handled independently on its own thread; registries open
their own database connection per call.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, unquote, urlparse

from dotenv import load_dotenv

from pupper.applications import (
    get_applications,
    get_applications_for_shelter_owner,
    submit_application,
)
from pupper.auth import bearer_token, decode_actor_token
from pupper.config import DEFAULT_HOST, DEFAULT_PORT, MAX_BODY_BYTES, require_auth
from pupper.dogs import create_dog, delete_dog, get_dog, get_dogs
from pupper.errors import (
    AuthenticationError,
    ForbiddenError,
    InternalError,
    PupperError,
    ValidationError,
)
from pupper.healthcheck import check_database
from pupper.orchestration import transition
from pupper.votes import cast_vote, get_votes_for_user, remove_vote

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}
DOG_FILTER_KEYS = ("state", "color", "minWeight", "maxWeight", "minAge", "maxAge")

ROUTES: list[tuple[str, re.Pattern, str]] = [
    ("GET", re.compile(r"^/health/?$"), "_health"),
    ("GET", re.compile(r"^/dogs/?$"), "_list_dogs"),
    ("POST", re.compile(r"^/dogs/?$"), "_create_dog"),
    ("GET", re.compile(r"^/dogs/(?P<dog_id>[^/]+)/?$"), "_get_dog"),
    ("DELETE", re.compile(r"^/dogs/(?P<dog_id>[^/]+)/?$"), "_delete_dog"),
    ("POST", re.compile(r"^/dogs/(?P<dog_id>[^/]+)/vote/?$"), "_vote"),
    ("GET", re.compile(r"^/users/(?P<user_id>[^/]+)/votes/?$"), "_user_votes"),
    ("GET", re.compile(r"^/users/(?P<user_id>[^/]+)/applications/?$"), "_shelter_applications"),
    ("GET", re.compile(r"^/applications/?$"), "_list_applications"),
    ("POST", re.compile(r"^/applications/?$"), "_submit_application"),
    ("PUT", re.compile(r"^/applications/(?P<application_id>[^/]+)/?$"), "_update_application"),
]


def _match_route(method: str, path: str) -> tuple[str | None, dict, bool]:
    """Find the handler for a request.

    Returns:
        Handler name (or None), decoded path params, and whether the path
        exists under a different method.
    """
    path_known = False
    for route_method, pattern, handler_name in ROUTES:
        match = pattern.match(path)
        if not match:
            continue
        path_known = True
        if route_method == method:
            params = {key: unquote(value) for key, value in match.groupdict().items()}
            return handler_name, params, True
    return None, {}, path_known


def _first_query_values(query: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(query).items() if values}


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _optional_version(payload: dict) -> int | None:
    raw = payload.get("version")
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValidationError("version must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("version must be an integer") from exc


class ApiHandler(BaseHTTPRequestHandler):
    """HTTP handler routing JSON requests to the registries."""

    server_version = "Pupper/1.0"

    def _send_json(self, status: int, payload: dict | None) -> None:
        data = json.dumps(payload, default=str).encode("utf-8") if payload is not None else b""
        self.send_response(status)
        for name, value in CORS_HEADERS.items():
            self.send_header(name, value)
        if payload is not None:
            self.send_header("Content-Type", "application/json")
        self.send_header("Cache-Control", "no-store")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        if data:
            self.wfile.write(data)

    def _read_json(self, required: bool = True) -> dict:
        """Read and decode the JSON object body of the request."""
        try:
            length = int(self.headers.get("Content-Length", 0))
        except ValueError as exc:
            raise ValidationError("Invalid Content-Length header") from exc
        if length > MAX_BODY_BYTES:
            raise ValidationError("Request body is too large")
        raw = self.rfile.read(length) if length > 0 else b""
        if not raw.strip():
            if required:
                raise ValidationError("Request body is required")
            return {}
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Request body must be valid JSON") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        return payload

    def _resolve_actor(self, claimed, field_name: str) -> str:
        """Return the authenticated actor for this request.

        A valid bearer token wins; a body/path identity that disagrees with
        it is refused. Without a token the claimed identity is used, unless
        ``PUPPER_REQUIRE_AUTH`` is on.
        """
        claimed_id = _text(claimed)
        token = bearer_token(self.headers.get("Authorization"))
        if token is not None:
            actor = decode_actor_token(token)
            if actor is None:
                raise AuthenticationError("Invalid authorization token")
            if claimed_id and claimed_id != actor:
                raise ForbiddenError("Request identity does not match the authorization token")
            return actor
        if require_auth():
            raise AuthenticationError("Authorization required")
        if not claimed_id:
            raise ValidationError(f"Missing required field: {field_name}")
        return claimed_id

    def _dispatch(self, method: str) -> None:
        parsed = urlparse(self.path)
        handler_name, params, path_known = _match_route(method, parsed.path)
        if handler_name is None:
            if path_known:
                return self._send_json(405, {"error": "Method not allowed"})
            return self._send_json(404, {"error": "Not found"})

        query = _first_query_values(parsed.query)
        try:
            status, payload = getattr(self, handler_name)(params, query)
        except PupperError as exc:
            if exc.status_code >= 500:
                logger.error(f"{method} {parsed.path} failed: {exc.message}")
            return self._send_json(exc.status_code, {"error": exc.message})
        except Exception:
            logger.exception(f"Unhandled error for {method} {parsed.path}")
            error = InternalError()
            return self._send_json(error.status_code, {"error": error.message})
        return self._send_json(status, payload)

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def do_PUT(self):
        self._dispatch("PUT")

    def do_DELETE(self):
        self._dispatch("DELETE")

    def do_OPTIONS(self):
        self._send_json(204, None)

    # Route handlers return (status, payload).

    def _health(self, params, query):
        try:
            check_database()
        except Exception as exc:
            logger.warning(f"Health check failed: {exc}")
            return 500, {"ok": False}
        return 200, {"ok": True}

    def _list_dogs(self, params, query):
        filters = {key: query[key] for key in DOG_FILTER_KEYS if key in query}
        dogs = [dog.to_dict() for dog in get_dogs(filters)]
        return 200, {"dogs": dogs, "count": len(dogs)}

    def _create_dog(self, params, query):
        payload = self._read_json()
        actor_id = self._resolve_actor(payload.get("createdBy"), "createdBy")
        dog_id = create_dog(payload, actor_id)
        return 201, {"message": "Dog created successfully", "dogId": dog_id}

    def _get_dog(self, params, query):
        return 200, get_dog(params["dog_id"]).to_dict()

    def _delete_dog(self, params, query):
        payload = self._read_json(required=False)
        actor_id = self._resolve_actor(payload.get("userId"), "userId")
        delete_dog(params["dog_id"], actor_id)
        return 200, {"message": "Dog deleted successfully", "dogId": params["dog_id"]}

    def _vote(self, params, query):
        payload = self._read_json()
        dog_id = params["dog_id"]
        actor_id = self._resolve_actor(payload.get("userId"), "userId")
        if payload.get("isRemoving") is True:
            removed = remove_vote(actor_id, dog_id)
            return 200, {
                "message": "Vote removed successfully",
                "vote": {"dogId": dog_id, "voteType": None},
                "removed": removed,
            }
        vote = cast_vote(actor_id, dog_id, payload.get("voteType"))
        return 201, {
            "message": "Vote recorded successfully",
            "vote": {"dogId": vote.dog_id, "voteType": vote.vote_type},
        }

    def _user_votes(self, params, query):
        user_id = self._resolve_actor(params["user_id"], "userId")
        votes = get_votes_for_user(user_id)
        return 200, {"userId": user_id, "votes": votes, "count": len(votes)}

    def _shelter_applications(self, params, query):
        owner_id = self._resolve_actor(params["user_id"], "userId")
        return 200, {"applications": get_applications_for_shelter_owner(owner_id)}

    def _list_applications(self, params, query):
        adopter_id = _text(query.get("adopterId"))
        return 200, {"applications": get_applications(adopter_id or None)}

    def _submit_application(self, params, query):
        payload = self._read_json()
        adopter_id = self._resolve_actor(payload.get("adopterId"), "adopterId")
        application_id = submit_application(payload, adopter_id)
        return 201, {
            "message": "Adoption application submitted successfully",
            "applicationId": application_id,
        }

    def _update_application(self, params, query):
        payload = self._read_json()
        actor_id = self._resolve_actor(payload.get("userId"), "userId")
        result = transition(
            params["application_id"],
            _text(payload.get("status")),
            actor_id,
            _optional_version(payload),
        )
        return 200, result

    def log_message(self, fmt, *args):
        logger.debug(f"{self.address_string()} {fmt % args}")


def main() -> None:
    """Run the Pupper API server from CLI arguments."""
    load_dotenv()
    log_level = (os.environ.get("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    parser = argparse.ArgumentParser(description="Serve the Pupper adoption API")
    parser.add_argument("--host", default=os.environ.get("PUPPER_HOST", DEFAULT_HOST))
    parser.add_argument(
        "--port", type=int, default=int(os.environ.get("PUPPER_PORT", DEFAULT_PORT))
    )
    args = parser.parse_args()

    server = ThreadingHTTPServer((args.host, args.port), ApiHandler)
    logger.info(f"Pupper API running at http://{args.host}:{args.port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
