"""Per-job webhook registry.

Each job owns its webhook entries outright: there is no registry shared
between jobs, so deleting an entry only ever touches the calling job.
Mutations for one job are serialized; different jobs proceed in parallel.
"""

from __future__ import annotations

import asyncio
from urllib.parse import urlsplit

from buildrelay.errors import InvalidInput, NotFound
from buildrelay.models import RELEASE_WEBHOOK, ActionRecord, Job
from buildrelay.store.jobs import JobStore
from buildrelay.utils.logging import get_logger
from buildrelay.webhooks.models import ReleaseWebhook

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Payload URL validation
# ---------------------------------------------------------------------------

def validate_payload_url(payload_url: str | None) -> str:
    """Validate a payload URL and return it normalized for storage."""
    if payload_url is None or not payload_url.strip():
        raise InvalidInput("Payload URL is empty", field="payloadUrl")
    value = payload_url.strip()
    if any(ch.isspace() for ch in value):
        raise InvalidInput(f"Malformed Payload URL: {value!r}", field="payloadUrl")
    try:
        parts = urlsplit(value)
        host = parts.hostname
        # Raises on a non-numeric or out-of-range port
        parts.port
    except ValueError as exc:
        raise InvalidInput(f"Malformed Payload URL ({exc})", field="payloadUrl") from exc
    if not host:
        raise InvalidInput("Malformed Payload URL: missing host name", field="payloadUrl")
    return value.rstrip("/")


def check_payload_url(payload_url: str | None) -> tuple[str, str]:
    """Form-style validation: returns ``(level, message)``.

    ``level`` is ``"ok"``, ``"warning"`` (nothing entered yet) or ``"error"``.
    """
    if payload_url is None or not payload_url.strip():
        return "warning", "Please provide a value"
    try:
        validate_payload_url(payload_url)
    except InvalidInput as exc:
        return "error", exc.message
    return "ok", ""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class WebhookRegistry:
    """Create, delete and list the webhooks registered on a job."""

    def __init__(self, store: JobStore) -> None:
        self._store = store
        self._locks: dict[str, asyncio.Lock] = {}

    async def _lock_for(self, job_name: str) -> asyncio.Lock:
        # Look the job up first so unknown names never get a lock entry
        job = await self._get_job(job_name)
        return self._locks.setdefault(job.name.lower(), asyncio.Lock())

    async def _get_job(self, job_name: str) -> Job:
        if not job_name:
            raise InvalidInput("Project name is empty", field="projectName")
        job = await self._store.get_job(job_name)
        if job is None:
            raise NotFound(f"Cannot find job with the name {job_name}")
        return job

    async def create(
        self,
        job_name: str,
        name: str,
        payload_url: str,
        secret: str = "",
    ) -> ReleaseWebhook:
        """Register a webhook on a job; repeat calls are no-ops.

        An existing entry matching the payload URL (case-insensitive) or the
        webhook name is reused rather than duplicated.
        """
        url = validate_payload_url(payload_url)
        async with await self._lock_for(job_name):
            job = await self._get_job(job_name)
            for webhook in job.webhooks():
                if webhook.matches_url(url) or webhook.matches_name(name):
                    log.info(
                        "webhook_already_registered",
                        job=job.name,
                        webhook=webhook.name,
                        payload_url=webhook.payload_url,
                    )
                    return webhook

            webhook = ReleaseWebhook(name=name or "", payload_url=url, secret=secret or "")
            job.actions.append(ActionRecord.for_webhook(webhook))
            await self._store.save_actions(job.name, job.actions)
            log.info("webhook_registered", job=job.name, webhook=webhook.name, payload_url=url)
            return webhook

    async def delete(self, job_name: str, name: str = "", payload_url: str = "") -> bool:
        """Remove the job's webhook matching ``name`` or ``payload_url``.

        Unnamed webhooks can only be addressed by their payload URL, which is
        compared after the same normalization ``create`` applies.
        Returns True if an entry was removed.
        """
        url = (payload_url or "").strip().rstrip("/")
        async with await self._lock_for(job_name):
            job = await self._get_job(job_name)
            for index, action in enumerate(job.actions):
                if action.kind != RELEASE_WEBHOOK:
                    continue
                webhook = action.webhook()
                if webhook.matches_name(name) or (url and webhook.matches_url(url)):
                    del job.actions[index]
                    await self._store.save_actions(job.name, job.actions)
                    log.info(
                        "webhook_removed",
                        job=job.name,
                        webhook=webhook.name,
                        payload_url=webhook.payload_url,
                    )
                    return True
        log.info("webhook_remove_missing", job=job_name, webhook=name, payload_url=url)
        return False

    async def list_webhooks(self, job_name: str) -> list[dict[str, str]]:
        """Public view of the job's webhooks, one entry per name."""
        job = await self._get_job(job_name)
        seen: set[str] = set()
        result: list[dict[str, str]] = []
        for webhook in job.webhooks():
            key = (webhook.name or webhook.payload_url).lower()
            if key in seen:
                continue
            seen.add(key)
            result.append(webhook.describe())
        return result

    async def webhooks_for(self, job_name: str) -> tuple[Job, list[ReleaseWebhook]]:
        """Full records, secrets included, for the dispatcher."""
        job = await self._get_job(job_name)
        return job, job.webhooks()
