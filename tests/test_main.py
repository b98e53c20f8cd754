import dataclasses

import pytest

import main as entry
from database.models import Client


def test_main_seeds_and_starts_api(in_memory_db, settings, monkeypatch):
    calls = {}
    monkeypatch.setattr(entry, "setup_logging", lambda s: None)
    monkeypatch.setattr(
        entry.uvicorn, "run", lambda app, **kwargs: calls.update(app=app, **kwargs)
    )
    config = dataclasses.replace(settings, database_url="sqlite:///:memory:", api_port=9000)

    assert entry.main(config) == 0
    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 9000
    assert calls["app"].title == "Pixoraa Hub"
    assert Client.select().count() == 4


def test_main_without_seeding(in_memory_db, settings, monkeypatch):
    monkeypatch.setattr(entry, "setup_logging", lambda s: None)
    monkeypatch.setattr(entry.uvicorn, "run", lambda app, **kwargs: None)
    config = dataclasses.replace(
        settings, database_url="sqlite:///:memory:", seed_demo_data=False
    )
    entry.main(config)
    assert Client.select().count() == 0


def test_main_requires_database_url(settings):
    with pytest.raises(RuntimeError):
        entry.main(dataclasses.replace(settings, database_url=""))
