from database.models import Client, Preference, Project, Task, TimeEntry
from services.seed_service import seed_demo_data
from services.time_tracking_service import SETTINGS_KEY


def test_seed_fills_empty_database(in_memory_db):
    created = seed_demo_data()
    assert created == {"clients": 4, "projects": 4, "tasks": 6, "time_entries": 4}

    john = Client.get(Client.email == "john.smith@example.com")
    assert john.project_count == 2

    redesign = Project.get(Project.title == "E-commerce Platform Redesign")
    assert redesign.task_count == 4
    assert redesign.completed_tasks == 2
    assert redesign.client_name == "John Smith"

    repo = Task.get(Task.title == "Set up project repository")
    schema = Task.get(Task.title == "Design database schema")
    assert schema.dependencies == [repo.id]
    assert repo.actual_hours == 3.5
    assert repo.completed_at is not None

    assert TimeEntry.select().where(TimeEntry.billable == False).count() == 1
    assert Preference.get_or_none(Preference.key == SETTINGS_KEY) is not None


def test_seed_is_idempotent(in_memory_db):
    seed_demo_data()
    assert seed_demo_data() == {"clients": 0, "projects": 0, "tasks": 0, "time_entries": 0}
    assert Client.select().count() == 4
    assert TimeEntry.select().count() == 4


def test_seed_keeps_existing_clients(make_client):
    make_client(name="Own client")
    created = seed_demo_data()
    assert created["clients"] == 0
    assert created["projects"] == 0
    assert Client.select().count() == 1
