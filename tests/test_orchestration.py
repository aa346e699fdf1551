from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

import pupper.orchestration as orchestration
from pupper.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from pupper.models import Application, ApplicationTask, Dog
from pupper.notifications import SENDERS

NOW = datetime(2025, 5, 1, 12, 0, tzinfo=timezone.utc)


def _dog(created_by="shelter-1"):
    return Dog(
        dog_id="dog-1",
        shelter="Happy Tails",
        city="Austin",
        state="TX",
        name="Biscuit",
        species="Labrador Retriever",
        description="",
        birthday=date(2020, 1, 1),
        weight=60.0,
        color="Yellow",
        created_by=created_by,
    )


def _application(status="pending", version=1):
    return Application(
        application_id="app-1",
        dog_id="dog-1",
        shelter="Happy Tails",
        adopter_id="adopter-1",
        adopter_name="Jane Doe",
        adopter_email="jane@example.com",
        adopter_phone="+15551234567",
        adopter_address="1 Main St",
        living_space="House",
        has_kids=False,
        status=status,
        version=version,
        created_at=NOW,
    )


class FakeStore:
    """In-memory stand-in for the application, dog and outbox registries."""

    def __init__(self, application, dog):
        self.application = application
        self.dog = dog
        self.dog_status_updates = []
        self.decisions = []
        self.task_states = {}
        self.sent = []

    def install(self, monkeypatch):
        monkeypatch.setattr(orchestration, "get_application", self.get_application)
        monkeypatch.setattr(orchestration, "get_dog", self.get_dog)
        monkeypatch.setattr(orchestration, "set_dog_status", self.set_dog_status)
        monkeypatch.setattr(orchestration, "record_decision", self.record_decision)
        monkeypatch.setattr(orchestration, "record_task_success", self.record_task_success)
        monkeypatch.setattr(orchestration, "record_task_failure", self.record_task_failure)
        monkeypatch.setitem(SENDERS, "email", lambda notice: self.sent.append(("email", notice)))
        monkeypatch.setitem(SENDERS, "sms", lambda notice: self.sent.append(("sms", notice)))
        return self

    def get_application(self, application_id):
        if self.application is None or application_id != self.application.application_id:
            raise NotFoundError("Application not found")
        return self.application

    def get_dog(self, dog_id):
        if self.dog is None or dog_id != self.dog.dog_id:
            raise NotFoundError("Dog not found")
        return self.dog

    def set_dog_status(self, dog_id, status):
        self.dog_status_updates.append((dog_id, status))
        return self.dog is not None

    def record_decision(self, application_id, new_status, expected_version, tasks):
        self.decisions.append((application_id, new_status, expected_version))
        created = [
            ApplicationTask(task_id=index, application_id=application_id, kind=kind, payload=payload)
            for index, (kind, payload) in enumerate(tasks, start=1)
        ]
        for task in created:
            self.task_states[task.task_id] = "pending"
        return self.application, created

    def record_task_success(self, task_id):
        self.task_states[task_id] = "done"

    def record_task_failure(self, task_id, error, max_attempts):
        self.task_states[task_id] = "pending"
        return "pending"


@pytest.fixture(autouse=True)
def _default_flags(monkeypatch):
    monkeypatch.delenv("PUPPER_ENFORCE_DOG_OWNERSHIP", raising=False)
    monkeypatch.delenv("PUPPER_NOTIFY_CHANNELS", raising=False)
    monkeypatch.delenv("PUPPER_TASK_MAX_ATTEMPTS", raising=False)


def test_approve_marks_dog_adopted_and_notifies(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    result = orchestration.transition("app-1", "approved", "shelter-1")

    assert result == {
        "message": "Application approved successfully",
        "applicationId": "app-1",
        "status": "approved",
    }
    assert store.decisions == [("app-1", "approved", 1)]
    assert store.dog_status_updates == [("dog-1", "adopted")]
    assert [channel for channel, _ in store.sent] == ["email", "sms"]
    notice = store.sent[0][1]
    assert notice.dog_name == "Biscuit"
    assert notice.approved
    assert set(store.task_states.values()) == {"done"}


def test_reject_leaves_dog_available(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    orchestration.transition("app-1", "rejected", "shelter-1")

    assert store.dog_status_updates == []
    assert len(store.sent) == 2
    assert not store.sent[0][1].approved


def test_notification_failure_does_not_fail_transition(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    def broken_email(_notice):
        raise RuntimeError("smtp down")

    monkeypatch.setitem(SENDERS, "email", broken_email)

    result = orchestration.transition("app-1", "approved", "shelter-1")

    assert result["status"] == "approved"
    assert store.dog_status_updates == [("dog-1", "adopted")]
    assert store.task_states == {1: "pending", 2: "done", 3: "done"}


def test_dog_update_failure_does_not_fail_transition(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    def broken_set_status(_dog_id, _status):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(orchestration, "set_dog_status", broken_set_status)

    result = orchestration.transition("app-1", "approved", "shelter-1")

    assert result["status"] == "approved"
    assert store.task_states[3] == "pending"


def test_task_recording_failure_is_swallowed(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    def broken_record(_task_id):
        raise RuntimeError("db gone")

    monkeypatch.setattr(orchestration, "record_task_success", broken_record)

    assert orchestration.transition("app-1", "rejected", "shelter-1")["status"] == "rejected"
    assert len(store.sent) == 2


def test_unknown_application_is_not_found_without_writes(monkeypatch):
    store = FakeStore(None, _dog()).install(monkeypatch)

    with pytest.raises(NotFoundError):
        orchestration.transition("missing", "approved", "shelter-1")
    assert store.decisions == []
    assert store.sent == []


@pytest.mark.parametrize("status", ["pending", "maybe", "", "APPROVED"])
def test_invalid_status_is_rejected_without_writes(monkeypatch, status):
    store = FakeStore(_application(), _dog()).install(monkeypatch)

    with pytest.raises(ValidationError, match='"approved" or "rejected"'):
        orchestration.transition("app-1", status, "shelter-1")
    assert store.decisions == []


def test_actor_is_required(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)
    with pytest.raises(ValidationError, match="User ID is required"):
        orchestration.transition("app-1", "approved", " ")
    assert store.decisions == []


def test_decided_application_is_a_conflict(monkeypatch):
    store = FakeStore(_application(status="approved", version=2), _dog()).install(monkeypatch)

    with pytest.raises(ConflictError, match="already approved"):
        orchestration.transition("app-1", "rejected", "shelter-1")
    assert store.decisions == []
    assert store.sent == []


def test_stale_version_is_a_conflict(monkeypatch):
    store = FakeStore(_application(version=4), _dog()).install(monkeypatch)

    with pytest.raises(ConflictError):
        orchestration.transition("app-1", "approved", "shelter-1", expected_version=3)
    assert store.decisions == []

    orchestration.transition("app-1", "approved", "shelter-1", expected_version=4)
    assert store.decisions == [("app-1", "approved", 4)]


def test_only_dog_creator_may_decide(monkeypatch):
    store = FakeStore(_application(), _dog(created_by="shelter-1")).install(monkeypatch)

    with pytest.raises(ForbiddenError):
        orchestration.transition("app-1", "approved", "adopter-1")
    assert store.decisions == []


def test_application_for_deleted_dog_can_still_be_decided(monkeypatch):
    store = FakeStore(_application(), None).install(monkeypatch)

    result = orchestration.transition("app-1", "rejected", "shelter-1")

    assert result["status"] == "rejected"
    assert store.decisions == [("app-1", "rejected", 1)]
    assert [notice.dog_name for _, notice in store.sent] == ["Unknown Dog", "Unknown Dog"]
    assert store.dog_status_updates == []


def test_ownership_check_can_be_disabled(monkeypatch):
    monkeypatch.setenv("PUPPER_ENFORCE_DOG_OWNERSHIP", "false")
    store = FakeStore(_application(), None).install(monkeypatch)

    result = orchestration.transition("app-1", "approved", "anyone")

    assert result["status"] == "approved"
    assert [notice.dog_name for _, notice in store.sent] == ["Unknown Dog", "Unknown Dog"]


def test_plan_follow_ups_respects_enabled_channels(monkeypatch):
    monkeypatch.setenv("PUPPER_NOTIFY_CHANNELS", "sms")
    tasks = orchestration.plan_follow_ups(_application(), "approved", "Biscuit")
    assert [kind for kind, _ in tasks] == ["notify_sms", "mark_dog_adopted"]
    assert tasks[0][1]["dogName"] == "Biscuit"
    assert tasks[0][1]["dogId"] == "dog-1"
    assert tasks[1][1] == {"dogId": "dog-1"}

    monkeypatch.setenv("PUPPER_NOTIFY_CHANNELS", "email")
    assert [kind for kind, _ in orchestration.plan_follow_ups(_application(), "rejected")] == [
        "notify_email"
    ]


def test_run_pending_tasks_retries_outbox(monkeypatch):
    store = FakeStore(_application(), _dog()).install(monkeypatch)
    pending = [
        ApplicationTask(
            task_id=7,
            application_id="app-1",
            kind="notify_email",
            payload={"applicationId": "app-1", "status": "approved", "dogId": "dog-1",
                     "email": "jane@example.com"},
        ),
        ApplicationTask(
            task_id=8, application_id="app-1", kind="mark_dog_adopted", payload={"dogId": "dog-1"}
        ),
    ]
    claims = []
    monkeypatch.setattr(
        orchestration,
        "claim_pending_tasks",
        lambda limit, claim_timeout: claims.append((limit, claim_timeout)) or pending,
    )
    monkeypatch.setenv("PUPPER_TASK_CLAIM_TIMEOUT", "120")
    monkeypatch.setattr(orchestration, "tqdm", lambda items, desc=None: items)

    counts = orchestration.run_pending_tasks(limit=10, max_attempts=3)

    assert counts == {"done": 2, "pending": 0, "failed": 0}
    assert claims == [(10, 120.0)]
    assert store.sent[0][1].dog_name == "Biscuit"
    assert store.dog_status_updates == [("dog-1", "adopted")]


def test_run_task_reports_failed_once_attempts_exhausted(monkeypatch):
    recorded = []
    monkeypatch.setattr(
        orchestration,
        "record_task_failure",
        lambda task_id, error, max_attempts: recorded.append((task_id, error, max_attempts))
        or "failed",
    )
    task = ApplicationTask(task_id=9, application_id="app-1", kind="unknown", payload={})

    assert orchestration.run_task(task, max_attempts=1) == "failed"
    assert recorded[0][0] == 9
    assert "Unknown task kind" in recorded[0][1]


def test_undialable_phone_skips_only_the_text(monkeypatch):
    monkeypatch.delenv("PUPPER_NOTIFY_CHANNELS", raising=False)
    application = replace(_application(), adopter_phone="555-1234")

    tasks = orchestration.plan_follow_ups(application, "approved", "Biscuit")

    assert [kind for kind, _ in tasks] == ["notify_email", "mark_dog_adopted"]


def test_undialable_phone_still_decides_and_emails(monkeypatch):
    store = FakeStore(replace(_application(), adopter_phone="555-1234"), _dog()).install(
        monkeypatch
    )

    result = orchestration.transition("app-1", "approved", "shelter-1")

    assert result["status"] == "approved"
    assert [channel for channel, _ in store.sent] == ["email"]
