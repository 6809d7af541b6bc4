"""Tests for application wiring and shutdown."""

import httpx

from buildrelay.config import ServerConfig, Settings
from buildrelay.core.bus import BuildCompleted
from buildrelay.main import BuildRelay
from buildrelay.webhooks.dispatcher import Dispatcher


class TestBuildRelay:
    async def test_stop_drains_pending_completions(self, tmp_path):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        settings = Settings(data_dir=str(tmp_path), jobs=["build-web"], server=ServerConfig(port=0))
        relay = BuildRelay(settings)
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        relay.dispatcher = Dispatcher(relay.registry, settings.dispatch, client=client)

        await relay.start()
        await relay.registry.create("build-web", "rm", "https://rm.example/hook", "")
        await relay.bus.publish(
            BuildCompleted(data={"job_name": "build-web", "summary": {}, "started_by": "alice"})
        )
        await relay.stop()
        await client.aclose()

        assert len(seen) == 1
        assert seen[0].url == "https://rm.example/hook"
