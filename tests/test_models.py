from datetime import date, datetime, timezone

from pupper.models import Application, ApplicationTask, Dog


def _dog(**overrides):
    fields = dict(
        dog_id="d1",
        shelter="Happy Tails",
        city="Austin",
        state="TX",
        name="Biscuit",
        species="Labrador Retriever",
        description="Loves fetch.",
        birthday=date(2020, 1, 1),
        weight=30.5,
        color="Yellow",
        created_by="shelter-1",
    )
    fields.update(overrides)
    return Dog(**fields)


def test_dog_defaults_to_available_and_serializes_camel_case():
    dog = _dog()
    data = dog.to_dict()
    assert dog.status == "available"
    assert data["dogId"] == "d1"
    assert data["createdBy"] == "shelter-1"
    assert data["birthday"] == "2020-01-01"
    assert data["status"] == "available"
    assert data["thumbnailUrl"] is None


def test_dog_age_years_uses_birthday():
    dog = _dog(birthday=date(2020, 1, 1))
    assert round(dog.age_years(today=date(2024, 1, 1)), 2) == 4.0


def test_dog_display_name_falls_back_to_shelter():
    assert _dog(name="").display_name == "Happy Tails"
    assert _dog(name="", shelter="").display_name == "Unknown Dog"
    assert "Biscuit" in str(_dog())


def test_application_created_equals_updated_when_new():
    created = datetime(2025, 5, 1, tzinfo=timezone.utc)
    app = Application(
        application_id="a1",
        dog_id="d1",
        shelter="Happy Tails",
        adopter_id="adopter-1",
        adopter_name="Sam",
        adopter_email="sam@example.com",
        adopter_phone="+15551234567",
        adopter_address="1 Main St",
        living_space="house",
        has_kids=False,
        created_at=created,
    )
    assert app.status == "pending"
    assert app.updated_at == app.created_at
    assert app.is_terminal is False
    data = app.to_dict()
    assert data["adopterEmail"] == "sam@example.com"
    assert data["hasKids"] is False
    assert data["createdAt"] == data["updatedAt"] == created.isoformat()


def test_application_task_from_record_defaults():
    task = ApplicationTask.from_record(
        {"task_id": 3, "application_id": "a1", "kind": "notify_email", "payload": None}
    )
    assert task.payload == {}
    assert task.state == "pending"
    assert task.attempts == 0
