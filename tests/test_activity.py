"""Activity log: publishing never breaks the caller, the worker persists events"""

import pytest

from workspan import activity, worker
from workspan.activity import RECORD_ACTIVITY_TASK, ActivityEvent, ActivityPublisher
from workspan.models import ProjectActivity

from .conftest import TestingSessionLocal


def make_event(project_id, **overrides):
    data = {
        "project_id": project_id,
        "milestone_id": None,
        "activity_type": "milestone_approved",
        "description": 'Milestone "Design" approved',
        "performed_by": "user-1",
        "metadata": {"project_completed": True},
    }
    data.update(overrides)
    return ActivityEvent(**data)


class FakePool:
    def __init__(self):
        self.jobs = []
        self.closed = False

    async def enqueue_job(self, name, payload):
        self.jobs.append((name, payload))

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_publisher_enqueues_each_event(monkeypatch):
    pool = FakePool()

    async def fake_create_pool(settings):
        return pool

    monkeypatch.setattr(activity, "create_pool", fake_create_pool)

    queued = await ActivityPublisher(enabled=True).publish([make_event("p1"), make_event("p2")])

    assert queued == 2
    assert [name for name, _ in pool.jobs] == [RECORD_ACTIVITY_TASK, RECORD_ACTIVITY_TASK]
    assert pool.jobs[0][1]["project_id"] == "p1"
    assert pool.closed


@pytest.mark.asyncio
async def test_publisher_swallows_redis_failures(monkeypatch):
    async def unreachable(settings):
        raise ConnectionError("redis is down")

    monkeypatch.setattr(activity, "create_pool", unreachable)

    assert await ActivityPublisher(enabled=True).publish([make_event("p1")]) == 0


@pytest.mark.asyncio
async def test_disabled_publisher_does_nothing(monkeypatch):
    async def should_not_run(settings):
        raise AssertionError("pool opened while disabled")

    monkeypatch.setattr(activity, "create_pool", should_not_run)

    assert await ActivityPublisher(enabled=False).publish([make_event("p1")]) == 0


@pytest.mark.asyncio
async def test_worker_records_activity(db_session, project, monkeypatch):
    monkeypatch.setattr(worker, "SessionLocal", TestingSessionLocal)
    event = make_event(project.id).model_dump(mode="json")

    result = await worker.record_project_activity_task({}, event)

    assert result["status"] == "completed"
    stored = db_session.query(ProjectActivity).one()
    assert stored.project_id == project.id
    assert stored.activity_type == "milestone_approved"
    assert stored.activity_metadata == {"project_completed": True}


@pytest.mark.asyncio
async def test_worker_skips_deleted_projects(db_session, monkeypatch):
    monkeypatch.setattr(worker, "SessionLocal", TestingSessionLocal)

    result = await worker.record_project_activity_task(
        {}, make_event("00000000-0000-0000-0000-000000000000").model_dump(mode="json")
    )

    assert result == {"status": "skipped"}
    assert db_session.query(ProjectActivity).count() == 0
