"""HTTP server using aiohttp.

Routes:

* ``POST /team/build/{job}``: build request (JSON or form parameters)
* ``POST /team/events``: webhook create/remove/list events
* ``POST /team/jobs/{job}/completed``: build completion hook
"""

from __future__ import annotations

import json
from typing import Any

from aiohttp import web

from buildrelay.config import ServerConfig, TriggerConfig
from buildrelay.core.bus import BuildCompleted, EventBus
from buildrelay.core.queue import BuildQueue
from buildrelay.core.submitter import TriggerSubmitter
from buildrelay.errors import BuildRelayError, ErrorKind, InvalidInput
from buildrelay.triggers.translator import translate_json, translate_parameters
from buildrelay.utils.logging import get_logger
from buildrelay.webhooks.hooks import handle_hook_event
from buildrelay.webhooks.registry import WebhookRegistry

log = get_logger(__name__)

_STATUS_FOR_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNSUPPORTED_OPERATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PERSISTENCE_FAILURE: 500,
    ErrorKind.DISPATCH_FAILURE: 502,
    ErrorKind.CONFIG_UNAVAILABLE: 503,
}


def error_response(exc: BuildRelayError) -> web.Response:
    return web.json_response(
        {"error": exc.kind.value, "message": exc.message},
        status=_STATUS_FOR_KIND.get(exc.kind, 500),
    )


@web.middleware
async def error_middleware(request: web.Request, handler: Any) -> web.StreamResponse:
    try:
        return await handler(request)
    except BuildRelayError as exc:
        log.warning(
            "request_rejected",
            path=request.path,
            error=exc.kind.value,
            message=exc.message,
        )
        return error_response(exc)


class RelayServer:
    """Receives build requests, webhook management events and completion hooks."""

    def __init__(
        self,
        config: ServerConfig,
        triggers: TriggerConfig,
        submitter: TriggerSubmitter,
        registry: WebhookRegistry,
        bus: EventBus,
        queue: BuildQueue | None = None,
    ) -> None:
        self._config = config
        self._triggers = triggers
        self._submitter = submitter
        self._registry = registry
        self._bus = bus
        self._queue = queue
        self._runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        app = self._build_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.bind, self._config.port)
        await site.start()
        log.info("relay_server_started", bind=self._config.bind, port=self._config.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        log.info("relay_server_stopped")

    # ------------------------------------------------------------------
    # App construction
    # ------------------------------------------------------------------

    def _build_app(self) -> web.Application:
        app = web.Application(middlewares=[error_middleware])
        app.router.add_post("/team/build/{job}", self._handle_build)
        app.router.add_post("/team/events", self._handle_hook_event)
        app.router.add_post("/team/jobs/{job}/completed", self._handle_completed)
        return app

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def _read_json(self, request: web.Request) -> Any:
        body = await request.read()
        if not body:
            return {}
        try:
            return json.loads(body)
        except ValueError as exc:
            raise InvalidInput(f"Invalid JSON: {exc}") from exc

    async def _handle_build(self, request: web.Request) -> web.Response:
        job_name = request.match_info["job"]
        delay = _parse_delay(request.query.get("delay"))

        if request.content_type in ("application/x-www-form-urlencoded", "multipart/form-data"):
            form = await request.post()
            params = [(k, v) for k, v in form.items() if isinstance(v, str)]
            trigger = translate_parameters(
                params,
                prefix=self._triggers.parameter_prefix,
                provider=self._triggers.provider,
            )
        else:
            trigger = translate_json(await self._read_json(request))

        principal = request.headers.get(self._config.principal_header) or None
        result = await self._submitter.submit(job_name, trigger, delay=delay, principal=principal)
        return web.json_response(result)

    async def _handle_hook_event(self, request: web.Request) -> web.Response:
        event = await self._read_json(request)
        if not isinstance(event, dict):
            raise InvalidInput("Hook event must be a JSON object")
        result = await handle_hook_event(self._registry, event)
        return web.json_response(result)

    async def _handle_completed(self, request: web.Request) -> web.Response:
        job_name = request.match_info["job"]
        summary = await self._read_json(request)
        if not isinstance(summary, dict):
            raise InvalidInput("Build summary must be a JSON object")

        # Fails fast with NotFound before anything is queued for dispatch
        job, _ = await self._registry.webhooks_for(job_name)

        started_by = ""
        item_id = request.query.get("queueItem")
        if item_id and self._queue is not None:
            if not item_id.isdigit():
                raise InvalidInput("queueItem must be a number", field="queueItem")
            item = await self._queue.get_item(int(item_id))
            if item is not None:
                started_by = item.started_by
                await self._queue.mark_completed(item.id)

        await self._bus.publish(
            BuildCompleted(data={
                "job_name": job.name,
                "summary": summary,
                "started_by": started_by,
            })
        )
        log.info("build_completed_received", job=job.name, started_by=started_by)
        return web.json_response({"accepted": True}, status=202)


def _parse_delay(raw: str | None) -> float:
    if raw is None or raw == "":
        return 0
    try:
        delay = float(raw)
    except ValueError as exc:
        raise InvalidInput(f"Invalid delay: {raw!r}", field="delay") from exc
    if delay < 0:
        raise InvalidInput("Delay must not be negative", field="delay")
    return delay
