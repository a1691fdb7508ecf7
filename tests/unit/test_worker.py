import pytest

from app.jobs import worker


class FakePool:
    def __init__(self):
        self.events: list[str] = []

    async def initialize(self):
        self.events.append("initialize")

    async def close(self):
        self.events.append("close")


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}
    pool = FakePool()

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)
    monkeypatch.setattr(worker, "db_pool", pool)

    await worker.run_worker("dummy")

    assert called["ok"] is True
    assert pool.events == ["initialize", "close"]


@pytest.mark.asyncio
async def test_run_worker_closes_pool_when_job_fails(monkeypatch):
    pool = FakePool()

    async def failing_job():
        raise RuntimeError("boom")

    monkeypatch.setitem(worker.JOB_REGISTRY, "failing", failing_job)
    monkeypatch.setattr(worker, "db_pool", pool)

    with pytest.raises(RuntimeError):
        await worker.run_worker("failing")

    assert pool.events == ["initialize", "close"]


@pytest.mark.asyncio
async def test_http_only_job_skips_database(monkeypatch):
    pool = FakePool()

    async def trigger():
        return {"ok": True}

    monkeypatch.setitem(worker.JOB_REGISTRY, "legislative_monitoring", trigger)
    monkeypatch.setattr(worker, "db_pool", pool)

    await worker.run_worker("Legislative_Monitoring")

    assert pool.events == []


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


def test_registry_exposes_poll_jobs():
    assert {"screening_poll", "screening_poll_once", "legislative_monitoring"} <= set(
        worker.JOB_REGISTRY
    )


@pytest.mark.asyncio
async def test_scheduler_refused_while_api_poller_enabled(monkeypatch):
    pool = FakePool()
    started = {"ok": False}

    async def scheduler():
        started["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "screening_poll", scheduler)
    monkeypatch.setattr(worker, "db_pool", pool)
    monkeypatch.setattr("app.jobs.worker.settings.SCREENING_POLLER_ENABLED", True)

    with pytest.raises(RuntimeError, match="SCREENING_POLLER_ENABLED=false"):
        await worker.run_worker("screening_poll")

    assert started["ok"] is False
    assert pool.events == []


@pytest.mark.asyncio
async def test_scheduler_runs_when_api_poller_disabled(monkeypatch):
    pool = FakePool()
    started = {"ok": False}

    async def scheduler():
        started["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "screening_poll", scheduler)
    monkeypatch.setattr(worker, "db_pool", pool)
    monkeypatch.setattr("app.jobs.worker.settings.SCREENING_POLLER_ENABLED", False)

    await worker.run_worker("screening_poll")

    assert started["ok"] is True
    assert pool.events == ["initialize", "close"]
