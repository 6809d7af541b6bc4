"""Submit translated triggers to the build scheduler."""

from __future__ import annotations

from typing import Any, Sequence

from buildrelay.core.bus import EventBus, TriggerSubmitted
from buildrelay.core.queue import Scheduler
from buildrelay.errors import InvalidInput, NotFound
from buildrelay.models import Cause, TriggerParameters, UserIdCause
from buildrelay.store.jobs import JobStore
from buildrelay.triggers.events import NoOp, TriggerEvent
from buildrelay.utils.logging import get_logger

log = get_logger(__name__)


class TriggerSubmitter:
    def __init__(
        self,
        scheduler: Scheduler,
        jobs: JobStore,
        root_url: str,
        bus: EventBus | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._jobs = jobs
        self._root_url = root_url if root_url.endswith("/") else f"{root_url}/"
        self._bus = bus

    def build_causes(
        self,
        trigger: TriggerEvent | NoOp,
        extra_causes: Sequence[Cause] = (),
        principal: str | None = None,
    ) -> list[Cause]:
        """Initiating principal first, then the trigger, then caller extras."""
        causes: list[Cause] = [UserIdCause(user_id=principal)]
        if not isinstance(trigger, NoOp):
            causes.append(TriggerParameters(event=trigger))
        causes.extend(extra_causes)
        return causes

    async def submit(
        self,
        job_name: str,
        trigger: TriggerEvent | NoOp,
        extra_causes: Sequence[Cause] = (),
        delay: float = 0,
        principal: str | None = None,
    ) -> dict[str, Any]:
        """Schedule a build of ``job_name``.

        Returns ``{"created": <absolute item url>}`` when the scheduler hands
        back an item, otherwise an empty dict.
        """
        if delay < 0:
            raise InvalidInput("Delay must not be negative", field="delay")
        job = await self._jobs.get_job(job_name)
        if job is None:
            raise NotFound(f"Cannot find job with the name {job_name}")

        causes = self.build_causes(trigger, extra_causes, principal)
        item = await self._scheduler.schedule(job.name, delay, causes)

        result: dict[str, Any] = {}
        if item is not None:
            result["created"] = self._root_url + item.url

        log.info(
            "trigger_submitted",
            job=job.name,
            trigger=getattr(trigger, "kind", "none"),
            created=result.get("created"),
        )
        if self._bus is not None:
            await self._bus.publish(
                TriggerSubmitted(data={
                    "job_name": job.name,
                    "trigger": None if isinstance(trigger, NoOp) else trigger.to_dict(),
                    "created": result.get("created"),
                })
            )
        return result
