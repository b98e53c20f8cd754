from datetime import date

import pytest

from database.models import Client, Project
from services import client_service as cs
from services.errors import ClientNotFoundError, FormValidationError


def test_add_client_trims_and_starts_without_projects(in_memory_db):
    client = cs.add_client(name="  Alice  ", email=" alice@example.com ", company="  ")
    assert client.name == "Alice"
    assert client.email == "alice@example.com"
    assert client.company is None
    assert client.project_count == 0
    assert client.status == "active"


def test_add_client_rejects_invalid_form(in_memory_db):
    with pytest.raises(FormValidationError) as exc:
        cs.add_client(name="", email="not-an-email")
    assert exc.value.errors == {
        "name": "Имя обязательно",
        "email": "Введите корректный email",
    }
    assert Client.select().count() == 0


def test_update_client_validates_merged_form(make_client):
    client = make_client(name="Bob")
    with pytest.raises(FormValidationError):
        cs.update_client(client.id, email="broken")
    updated = cs.update_client(client.id, phone="+1 555 123 4567", status="pending")
    assert updated.phone == "+1 555 123 4567"
    assert updated.status == "pending"


def test_update_client_renames_projects(make_client, make_project):
    client = make_client(name="Old name")
    project = make_project(client=client)
    cs.update_client(client.id, name="New name")
    assert Project.get_by_id(project.id).client_name == "New name"


def test_update_missing_client_raises(in_memory_db):
    with pytest.raises(ClientNotFoundError):
        cs.update_client(999, name="Ghost")


def test_delete_and_restore(make_client):
    client = make_client()
    assert cs.delete_client(client.id) is True
    assert cs.get_client_by_id(client.id) is None
    assert cs.delete_client(client.id) is False
    restored = cs.restore_client(client.id)
    assert restored.is_deleted is False
    assert cs.get_client_by_id(client.id) is not None


def test_project_count_follows_projects(make_client, make_project):
    from services import project_service as ps

    client = make_client()
    p1 = make_project(client=client)
    make_project(client=client)
    assert cs.get_client_by_id(client.id).project_count == 2
    ps.delete_project(p1.id)
    assert cs.get_client_by_id(client.id).project_count == 1


def test_search_is_case_insensitive(make_client):
    make_client(name="Alice", company="Acme Corp")
    make_client(name="Bob", email="bob@builder.io")
    assert [c.name for c in cs.search_clients("acme")] == ["Alice"]
    assert [c.name for c in cs.search_clients("BUILDER")] == ["Bob"]
    assert len(list(cs.search_clients(""))) == 2


def test_status_filter_returns_exact_subset(make_client):
    make_client(name="Active one")
    make_client(name="Pending one", status="pending")
    make_client(name="Pending two", status="pending")
    names = {c.name for c in cs.build_client_query(status="pending")}
    assert names == {"Pending one", "Pending two"}
    assert len(list(cs.build_client_query(status="all"))) == 3


def test_sort_by_name_toggles(make_client):
    for name in ("charlie", "Alice", "bob"):
        make_client(name=name)
    asc = [c.name for c in cs.build_client_query(sort_field="name", sort_order="asc")]
    desc = [c.name for c in cs.build_client_query(sort_field="name", sort_order="desc")]
    assert asc == ["Alice", "bob", "charlie"]
    assert desc == list(reversed(asc))


def test_sort_last_contact_puts_empty_last(make_client):
    make_client(name="Never")
    make_client(name="Early", last_contact_date=date(2024, 1, 1))
    make_client(name="Late", last_contact_date=date(2024, 2, 1))
    names = [c.name for c in cs.build_client_query(sort_field="last_contact")]
    assert names == ["Early", "Late", "Never"]


def test_status_counts(make_client):
    make_client()
    make_client(status="inactive")
    counts = cs.get_status_counts()
    assert counts["active"] == 1
    assert counts["inactive"] == 1
    assert counts["archived"] == 0
    assert counts["all"] == 2


def test_initialize_clients_only_when_empty(in_memory_db):
    assert cs.initialize_clients() == len(cs.DEFAULT_CLIENTS)
    assert cs.initialize_clients() == 0
    assert Client.select().count() == len(cs.DEFAULT_CLIENTS)
