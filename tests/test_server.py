"""Tests for the HTTP surface."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from buildrelay.config import DispatchConfig, ServerConfig, TriggerConfig
from buildrelay.core.bus import EventBus, EventType
from buildrelay.core.queue import BuildQueue
from buildrelay.core.submitter import TriggerSubmitter
from buildrelay.models import TriggerParameters
from buildrelay.store.jobs import JobStore
from buildrelay.triggers.events import CommitPush, PullRequestMerge
from buildrelay.webhooks.dispatcher import Dispatcher
from buildrelay.webhooks.registry import WebhookRegistry
from buildrelay.webhooks.server import RelayServer


TEAM_PARAMETERS = {
    "collectionUri": "https://fabrikam.visualstudio.com",
    "repoUri": "https://fabrikam.visualstudio.com/Personal/_git/relay",
    "projectId": "Personal",
    "repoId": "relay",
    "commit": "6a23fc7afec31f0a14bade6544bed4f16492e6d2",
    "pushedBy": "olivida",
}


@pytest.fixture
async def store(tmp_path):
    s = JobStore(tmp_path / "jobs.db")
    await s.start()
    await s.add_job("build-web")
    yield s
    await s.stop()


@pytest.fixture
async def queue(store, tmp_path):
    q = BuildQueue(store, tmp_path)
    await q.start()
    yield q
    await q.stop()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def registry(store):
    return WebhookRegistry(store)


@pytest.fixture
def server(store, queue, registry, bus):
    submitter = TriggerSubmitter(queue, store, "http://ci.example/", bus=bus)
    return RelayServer(ServerConfig(), TriggerConfig(), submitter, registry, bus, queue=queue)


@pytest.fixture
async def client(server):
    app = server._build_app()
    async with TestClient(TestServer(app)) as c:
        yield c


def _trigger_of(item):
    for cause in item.causes:
        if isinstance(cause, TriggerParameters):
            return cause.event
    return None


class TestBuildEndpoint:
    async def test_json_pull_request(self, client, queue):
        payload = {"team-parameters": {**TEAM_PARAMETERS, "pullRequestId": 42, "iterationId": 1}}
        resp = await client.post("/team/build/build-web", json=payload)
        assert resp.status == 200
        body = await resp.json()
        assert body["created"].startswith("http://ci.example/queue/item/")

        items = await queue.pending("build-web")
        trigger = _trigger_of(items[0])
        assert isinstance(trigger, PullRequestMerge)
        assert trigger.pull_request_id == 42

    async def test_json_commit_push(self, client, queue):
        resp = await client.post("/team/build/build-web", json={"team-parameters": TEAM_PARAMETERS})
        assert resp.status == 200
        items = await queue.pending("build-web")
        assert isinstance(_trigger_of(items[0]), CommitPush)

    async def test_form_pull_request(self, client, queue):
        form = {
            "_team-build_Build.Repository.Provider": "TfGit",
            "_team-build_Build.SourceBranch": "refs/pull/7/merge",
            "_team-build_System.TeamFoundationCollectionUri": "https://fabrikam.visualstudio.com",
            "_team-build_Build.Repository.Uri": "https://fabrikam.visualstudio.com/_git/relay",
            "_team-build_System.TeamProject": "Personal",
            "_team-build_Build.SourceVersion": "6a23fc7a",
            "_team-build_Build.RequestedFor": "olivida",
        }
        resp = await client.post("/team/build/build-web", data=form)
        assert resp.status == 200
        items = await queue.pending("build-web")
        trigger = _trigger_of(items[0])
        assert isinstance(trigger, PullRequestMerge)
        assert trigger.pull_request_id == 7

    async def test_form_other_provider_queues_plain_build(self, client, queue):
        form = {"_team-build_Build.Repository.Provider": "GitHub"}
        resp = await client.post("/team/build/build-web", data=form, headers={"X-Forwarded-User": "bob"})
        assert resp.status == 200
        items = await queue.pending("build-web")
        assert _trigger_of(items[0]) is None
        assert items[0].started_by == "bob"

    async def test_form_multiple_values_rejected(self, client):
        data = [
            ("_team-build_Build.Repository.Provider", "TfGit"),
            ("_team-build_Build.Repository.Provider", "TfGit"),
        ]
        resp = await client.post(
            "/team/build/build-web",
            data="&".join(f"{k}={v}" for k, v in data),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert resp.status == 400
        body = await resp.json()
        assert body["error"] == "invalid_input"
        assert "Build.Repository.Provider" in body["message"]

    async def test_unknown_job_returns_404(self, client):
        resp = await client.post("/team/build/missing", json={})
        assert resp.status == 404

    async def test_malformed_json_returns_400(self, client):
        resp = await client.post(
            "/team/build/build-web",
            data=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status == 400

    async def test_bad_delay_returns_400(self, client):
        resp = await client.post("/team/build/build-web?delay=soon", json={})
        assert resp.status == 400

    async def test_disabled_job_returns_empty_object(self, client, store):
        await store.set_disabled("build-web", True)
        resp = await client.post("/team/build/build-web", json={})
        assert resp.status == 200
        assert await resp.json() == {}


class TestHookEventEndpoint:
    async def test_create_and_list(self, client):
        resp = await client.post("/team/events", json={
            "eventType": "rmwebhook-create",
            "resource": {
                "projectName": "build-web",
                "webhookName": "rm",
                "payloadUrl": "https://rm.example/hook/",
                "secret": "s3cr3t",
            },
        })
        assert resp.status == 200

        resp = await client.post("/team/events", json={
            "eventType": "rmwebhook-list",
            "resource": {"projectName": "build-web"},
        })
        assert await resp.json() == {
            "ReleaseWebhooks": [{"WebhookName": "rm", "PayloadUrl": "https://rm.example/hook"}]
        }

    async def test_unsupported_operation_returns_400(self, client):
        resp = await client.post("/team/events", json={
            "eventType": "rmwebhook-rename",
            "resource": {"projectName": "build-web"},
        })
        assert resp.status == 400
        assert (await resp.json())["error"] == "unsupported_operation"

    async def test_invalid_payload_url_returns_400(self, client):
        resp = await client.post("/team/events", json={
            "eventType": "rmwebhook-create",
            "resource": {"projectName": "build-web", "payloadUrl": "http:///path"},
        })
        assert resp.status == 400


class TestCompletedEndpoint:
    async def test_completion_dispatches_to_webhooks(self, client, registry, queue, bus):
        received = []

        async def hook(request: web.Request) -> web.Response:
            received.append(await request.json())
            return web.Response(text="ok")

        receiver_app = web.Application()
        receiver_app.router.add_post("/hook", hook)

        dispatcher = Dispatcher(registry, DispatchConfig(trust_env=False))
        await dispatcher.start()
        bus.subscribe(EventType.BUILD_COMPLETED, dispatcher.on_build_completed)
        await bus.start()

        try:
            async with TestServer(receiver_app) as receiver:
                await registry.create("build-web", "rm", str(receiver.make_url("/hook")), "")
                build = await client.post(
                    "/team/build/build-web",
                    json={},
                    headers={"X-Forwarded-User": "alice"},
                )
                created = (await build.json())["created"]
                item_id = created.rstrip("/").rsplit("/", 1)[-1]

                resp = await client.post(
                    f"/team/jobs/build-web/completed?queueItem={item_id}",
                    json={"result": "SUCCESS"},
                )
                assert resp.status == 202
                await asyncio.wait_for(bus.wait_idle(), timeout=5)
        finally:
            await bus.stop()
            await dispatcher.stop()

        assert received == [{"result": "SUCCESS", "name": "build-web", "startedBy": "alice"}]
        assert await queue.pending("build-web") == []

    async def test_unknown_job_returns_404(self, client):
        resp = await client.post("/team/jobs/missing/completed", json={})
        assert resp.status == 404

    async def test_summary_must_be_object(self, client):
        resp = await client.post("/team/jobs/build-web/completed", json=[1, 2])
        assert resp.status == 400
