import itertools
from datetime import date, datetime

import pytest

from services import client_service as cs
from services import project_service as ps
from services import task_service as ts
from services import time_tracking_service as tts

_seq = itertools.count(1)


@pytest.fixture
def make_client(in_memory_db):
    def factory(**kwargs):
        n = next(_seq)
        data = {"name": f"Client {n}", "email": f"client{n}@example.com"}
        data.update(kwargs)
        return cs.add_client(**data)

    return factory


@pytest.fixture
def make_project(make_client):
    def factory(client=None, **kwargs):
        client = client or make_client()
        data = {
            "title": f"Project {next(_seq)}",
            "client_id": client.id,
            "start_date": date(2024, 1, 1),
            "hourly_rate": 100,
        }
        data.update(kwargs)
        return ps.add_project(**data)

    return factory


@pytest.fixture
def make_task(make_project):
    def factory(project=None, **kwargs):
        project = project or make_project()
        data = {"title": f"Task {next(_seq)}", "project_id": project.id}
        data.update(kwargs)
        return ts.add_task(**data)

    return factory


@pytest.fixture
def make_time_entry(make_task):
    def factory(task=None, **kwargs):
        task = task or make_task()
        data = {
            "task_id": task.id,
            "project_id": task.project_id,
            "start_time": datetime(2024, 1, 15, 9, 0),
            "duration": 60,
        }
        data.update(kwargs)
        return tts.add_time_entry(**data)

    return factory
