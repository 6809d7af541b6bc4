"""Webhook registration and dispatch outcome models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from buildrelay.errors import ErrorKind


@dataclass
class ReleaseWebhook:
    name: str
    payload_url: str
    secret: str = ""

    def matches_name(self, name: str) -> bool:
        return bool(self.name) and self.name.lower() == (name or "").lower()

    def matches_url(self, payload_url: str) -> bool:
        return self.payload_url.lower() == payload_url.lower()

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "payloadUrl": self.payload_url, "secret": self.secret}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReleaseWebhook:
        return cls(
            name=data.get("name", "") or "",
            payload_url=data["payloadUrl"],
            secret=data.get("secret", "") or "",
        )

    def describe(self) -> dict[str, str]:
        """Public view used by list responses; never includes the secret."""
        entry = {"PayloadUrl": self.payload_url}
        if self.name:
            entry = {"WebhookName": self.name, **entry}
        return entry


@dataclass
class DispatchOutcome:
    webhook: str
    payload_url: str
    http_status: int | None = None
    body_on_failure: str = ""
    error_kind: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.http_status is not None and 200 <= self.http_status < 300
