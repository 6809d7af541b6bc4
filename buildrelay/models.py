"""Job, action record and causation models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from buildrelay.triggers.events import TriggerEvent, event_from_dict
from buildrelay.webhooks.models import ReleaseWebhook

RELEASE_WEBHOOK = "release-webhook"


@dataclass
class ActionRecord:
    """One typed entry in a job's ordered action list."""

    kind: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_webhook(cls, webhook: ReleaseWebhook) -> ActionRecord:
        return cls(kind=RELEASE_WEBHOOK, data=webhook.to_dict())

    def webhook(self) -> ReleaseWebhook:
        if self.kind != RELEASE_WEBHOOK:
            raise ValueError(f"Action of kind {self.kind!r} is not a release webhook")
        return ReleaseWebhook.from_dict(self.data)


@dataclass
class Job:
    name: str
    disabled: bool = False
    actions: list[ActionRecord] = field(default_factory=list)

    def records(self, kind: str) -> list[ActionRecord]:
        return [a for a in self.actions if a.kind == kind]

    def webhooks(self) -> list[ReleaseWebhook]:
        return [a.webhook() for a in self.records(RELEASE_WEBHOOK)]


# ---------------------------------------------------------------------------
# Causation annotations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class UserIdCause:
    user_id: str | None = None

    kind: ClassVar[str] = "user-id"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "userId": self.user_id}


@dataclass(frozen=True)
class TriggerParameters:
    event: TriggerEvent

    kind: ClassVar[str] = "trigger-parameters"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "event": self.event.to_dict()}


@dataclass(frozen=True)
class NoteCause:
    """Free-form annotation supplied by a caller alongside the trigger."""

    text: str

    kind: ClassVar[str] = "note"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "text": self.text}


Cause = Union[UserIdCause, TriggerParameters, NoteCause]


def cause_from_dict(data: dict[str, Any]) -> Cause:
    kind = data.get("kind")
    if kind == UserIdCause.kind:
        return UserIdCause(user_id=data.get("userId"))
    if kind == TriggerParameters.kind:
        return TriggerParameters(event=event_from_dict(data["event"]))
    if kind == NoteCause.kind:
        return NoteCause(text=data.get("text", ""))
    raise ValueError(f"Unknown cause kind: {kind!r}")
