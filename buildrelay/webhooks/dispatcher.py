"""Send signed build-completion payloads to a job's webhooks."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from buildrelay.config import DispatchConfig
from buildrelay.core.bus import Event
from buildrelay.errors import ConfigUnavailable, ErrorKind
from buildrelay.utils.logging import get_logger
from buildrelay.webhooks.models import DispatchOutcome, ReleaseWebhook
from buildrelay.webhooks.registry import WebhookRegistry
from buildrelay.webhooks.signing import sign_payload

log = get_logger(__name__)


class Dispatcher:
    """Posts completion events, one independent request per webhook.

    A failure on one endpoint (bad status, transport error, signing error)
    is logged and recorded in its outcome; the other endpoints are still sent.
    """

    def __init__(
        self,
        registry: WebhookRegistry,
        config: DispatchConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._registry = registry
        self._config = config
        self._client = client
        self._owns_client = client is None

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                trust_env=self._config.trust_env,
            )
            self._owns_client = True

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    @staticmethod
    def build_body(job_name: str, summary: dict[str, Any] | None, started_by: str | None) -> dict[str, Any]:
        body = dict(summary or {})
        body["name"] = job_name
        body["startedBy"] = started_by or ""
        return body

    async def dispatch_completion(
        self,
        job_name: str,
        summary: dict[str, Any] | None = None,
        started_by: str | None = None,
    ) -> list[DispatchOutcome]:
        try:
            job, webhooks = await self._registry.webhooks_for(job_name)
        except ConfigUnavailable:
            log.error("webhook_dispatch_skipped", job=job_name, error=ErrorKind.CONFIG_UNAVAILABLE.value)
            return []

        if not webhooks:
            log.debug("webhook_dispatch_none", job=job.name)
            return []

        body = self.build_body(job.name, summary, started_by)
        payload = json.dumps(body, separators=(",", ":")).encode()

        outcomes = await asyncio.gather(
            *(self._send(job.name, webhook, payload) for webhook in webhooks)
        )
        return list(outcomes)

    async def _send(self, job_name: str, webhook: ReleaseWebhook, payload: bytes) -> DispatchOutcome:
        outcome = DispatchOutcome(webhook=webhook.name, payload_url=webhook.payload_url)

        headers = {
            "Content-Type": "application/json",
            "Accept": f"application/json; api-version={self._config.api_version}",
        }
        try:
            signature = sign_payload(payload, webhook.secret, self._config.signature_algorithm)
        except ValueError as exc:
            log.error(
                "webhook_signing_failed",
                job=job_name,
                webhook=webhook.name,
                error=str(exc),
            )
            outcome.error_kind = ErrorKind.DISPATCH_FAILURE
            return outcome
        if signature is not None:
            headers[self._config.signature_header] = signature

        if self._client is None:
            await self.start()
        assert self._client is not None

        try:
            response = await self._client.post(webhook.payload_url, content=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log.error(
                "webhook_dispatch_error",
                job=job_name,
                webhook=webhook.name,
                payload_url=webhook.payload_url,
                error=str(exc),
            )
            outcome.error_kind = ErrorKind.DISPATCH_FAILURE
            return outcome

        outcome.http_status = response.status_code
        if outcome.ok:
            log.info(
                "webhook_dispatched",
                job=job_name,
                webhook=webhook.name,
                status=response.status_code,
            )
        else:
            outcome.body_on_failure = response.text
            outcome.error_kind = ErrorKind.DISPATCH_FAILURE
            log.warning(
                "webhook_dispatch_failed",
                job=job_name,
                webhook=webhook.name,
                payload_url=webhook.payload_url,
                status=response.status_code,
                content=response.text,
            )
        return outcome

    # ------------------------------------------------------------------
    # Bus handler
    # ------------------------------------------------------------------

    async def on_build_completed(self, event: Event) -> None:
        data = event.data
        await self.dispatch_completion(
            data["job_name"],
            data.get("summary"),
            data.get("started_by"),
        )
