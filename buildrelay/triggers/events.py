"""Trigger event variants produced by the translator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

# The flat-parameter form never carries the pull request iteration
UNKNOWN_ITERATION = -1


@dataclass(frozen=True)
class _PushFields:
    collection_uri: str
    repo_uri: str
    project_id: str
    commit_id: str
    pushed_by: str

    def _base_dict(self) -> dict[str, Any]:
        return {
            "collectionUri": self.collection_uri,
            "repoUri": self.repo_uri,
            "projectId": self.project_id,
            "commit": self.commit_id,
            "pushedBy": self.pushed_by,
        }


@dataclass(frozen=True)
class CommitPush(_PushFields):
    kind: ClassVar[str] = "commit-push"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.kind, **self._base_dict()}


@dataclass(frozen=True)
class PullRequestMerge(_PushFields):
    pull_request_id: int
    iteration_id: int = UNKNOWN_ITERATION

    kind: ClassVar[str] = "pull-request-merge"

    @property
    def iteration_known(self) -> bool:
        return self.iteration_id != UNKNOWN_ITERATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            **self._base_dict(),
            "pullRequestId": self.pull_request_id,
            "iterationId": self.iteration_id,
        }


class NoOp:
    """Translation produced no trigger; an unparameterized build may still run."""

    _instance: NoOp | None = None

    def __new__(cls) -> NoOp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_OP"

    def __bool__(self) -> bool:
        return False


NO_OP = NoOp()

TriggerEvent = Union[CommitPush, PullRequestMerge]


def event_from_dict(data: dict[str, Any]) -> TriggerEvent:
    """Rebuild a trigger event from its ``to_dict`` form."""
    fields = dict(
        collection_uri=data["collectionUri"],
        repo_uri=data["repoUri"],
        project_id=data["projectId"],
        commit_id=data["commit"],
        pushed_by=data["pushedBy"],
    )
    if data.get("type") == PullRequestMerge.kind:
        return PullRequestMerge(
            **fields,
            pull_request_id=int(data["pullRequestId"]),
            iteration_id=int(data.get("iterationId", UNKNOWN_ITERATION)),
        )
    return CommitPush(**fields)
