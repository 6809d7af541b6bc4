"""Tests for the SQLite job store."""

import aiosqlite
import pytest

from buildrelay.errors import ConfigUnavailable, InvalidInput, PersistenceFailure
from buildrelay.models import RELEASE_WEBHOOK, ActionRecord
from buildrelay.store.jobs import JobStore
from buildrelay.webhooks.models import ReleaseWebhook


@pytest.fixture
async def store(tmp_path):
    s = JobStore(tmp_path / "jobs.db")
    await s.start()
    yield s
    await s.stop()


class TestJobStore:
    async def test_add_and_get(self, store):
        await store.add_job("Deploy-Web")
        job = await store.get_job("Deploy-Web")
        assert job is not None
        assert job.name == "Deploy-Web"
        assert job.disabled is False
        assert job.actions == []

    async def test_lookup_is_case_insensitive(self, store):
        await store.add_job("Deploy-Web")
        job = await store.get_job("deploy-web")
        assert job is not None
        assert job.name == "Deploy-Web"

    async def test_get_missing(self, store):
        assert await store.get_job("nope") is None

    async def test_add_existing_returns_it(self, store):
        await store.add_job("build")
        again = await store.add_job("BUILD")
        assert again.name == "build"
        assert len(await store.list_jobs()) == 1

    async def test_empty_name_rejected(self, store):
        with pytest.raises(InvalidInput):
            await store.add_job("  ")

    async def test_save_and_load_actions_in_order(self, store):
        await store.add_job("build")
        actions = [
            ActionRecord(kind="archive", data={"pattern": "*.zip"}),
            ActionRecord.for_webhook(ReleaseWebhook("wh1", "https://a.example/hook", "s1")),
            ActionRecord.for_webhook(ReleaseWebhook("wh2", "https://b.example/hook")),
        ]
        await store.save_actions("build", actions)

        job = await store.get_job("build")
        assert [a.kind for a in job.actions] == ["archive", RELEASE_WEBHOOK, RELEASE_WEBHOOK]
        assert job.actions[0].data == {"pattern": "*.zip"}
        assert [w.name for w in job.webhooks()] == ["wh1", "wh2"]
        assert job.webhooks()[0].secret == "s1"

    async def test_save_replaces_previous_actions(self, store):
        await store.add_job("build")
        await store.save_actions("build", [ActionRecord(kind="archive")])
        await store.save_actions("build", [])
        job = await store.get_job("build")
        assert job.actions == []

    async def test_disable(self, store):
        await store.add_job("build")
        assert await store.set_disabled("build", True) is True
        job = await store.get_job("build")
        assert job.disabled is True

    async def test_save_failure_is_persistence_failure(self, store, monkeypatch):
        await store.add_job("build")

        async def broken(*args, **kwargs):
            raise aiosqlite.OperationalError("disk I/O error")

        monkeypatch.setattr(store._db, "executemany", broken)
        with pytest.raises(PersistenceFailure):
            await store.save_actions("build", [ActionRecord(kind="archive")])


class TestJobStoreLifecycle:
    async def test_unavailable_before_start(self, tmp_path):
        store = JobStore(tmp_path / "jobs.db")
        assert store.available is False
        with pytest.raises(ConfigUnavailable):
            await store.get_job("build")

    async def test_persists_across_restarts(self, tmp_path):
        path = tmp_path / "jobs.db"
        store = JobStore(path)
        await store.start()
        await store.add_job("build")
        await store.save_actions(
            "build", [ActionRecord.for_webhook(ReleaseWebhook("wh", "https://a.example"))]
        )
        await store.stop()

        reopened = JobStore(path)
        await reopened.start()
        try:
            job = await reopened.get_job("build")
            assert job.webhooks()[0].payload_url == "https://a.example"
        finally:
            await reopened.stop()
