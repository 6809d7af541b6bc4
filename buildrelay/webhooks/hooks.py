"""Webhook management events from the upstream release service."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from buildrelay.errors import InvalidInput, UnsupportedOperation
from buildrelay.utils.logging import get_logger
from buildrelay.webhooks.registry import WebhookRegistry

log = get_logger(__name__)

CREATE_EVENT = "rmwebhook-create"
REMOVE_EVENT = "rmwebhook-remove"
LIST_EVENT = "rmwebhook-list"


class ReleaseWebhookResource(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    operation_type: str | None = Field(default=None, alias="operationType")
    webhook_name: str | None = Field(default=None, alias="webhookName")
    project_name: str | None = Field(default=None, alias="projectName")
    payload_url: str | None = Field(default=None, alias="payloadUrl")
    secret: str | None = None


def parse_resource(resource: Any) -> ReleaseWebhookResource:
    if resource is None:
        raise InvalidInput("event parameter is null", field="resource")
    try:
        return ReleaseWebhookResource.model_validate(resource)
    except ValidationError as exc:
        raise InvalidInput(f"Invalid webhook resource: {exc}", field="resource") from exc


async def handle_hook_event(registry: WebhookRegistry, event: dict[str, Any]) -> dict[str, Any]:
    """Apply a create/remove/list event and return the JSON response."""
    event_type = str(event.get("eventType", ""))
    op = event_type.lower()
    if op not in (CREATE_EVENT, REMOVE_EVENT, LIST_EVENT):
        raise UnsupportedOperation(f"Webhook operation {event_type!r} is not supported")

    resource = parse_resource(event.get("resource"))
    if not resource.project_name:
        raise InvalidInput("Project name is empty", field="projectName")

    log.info("webhook_hook_event", event_type=op, job=resource.project_name)

    if op == CREATE_EVENT:
        await registry.create(
            resource.project_name,
            resource.webhook_name or "",
            resource.payload_url or "",
            resource.secret or "",
        )
    elif op == REMOVE_EVENT:
        await registry.delete(
            resource.project_name,
            resource.webhook_name or "",
            resource.payload_url or "",
        )
    else:
        webhooks = await registry.list_webhooks(resource.project_name)
        return {"ReleaseWebhooks": webhooks}

    return _echo(event)


def _echo(event: dict[str, Any]) -> dict[str, Any]:
    """Return the event with any secret in the resource blanked out."""
    echoed = dict(event)
    resource = echoed.get("resource")
    if isinstance(resource, dict) and resource.get("secret"):
        echoed["resource"] = {**resource, "secret": "***"}
    return echoed
