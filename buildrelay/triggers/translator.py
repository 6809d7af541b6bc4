"""Translate inbound build requests into trigger events.

Two payload shapes arrive at the build endpoint:

* a JSON object carrying a ``team-parameters`` object (programmatic hooks);
* a flat parameter map from a legacy form post, where the relevant keys carry
  a fixed prefix such as ``_team-build_Build.SourceBranch``.

Both end up as a :class:`CommitPush`, a :class:`PullRequestMerge`, or
:data:`NO_OP` when the request carries nothing to trigger on.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

from buildrelay.errors import InvalidInput
from buildrelay.triggers.events import (
    NO_OP,
    UNKNOWN_ITERATION,
    CommitPush,
    NoOp,
    PullRequestMerge,
    TriggerEvent,
)
from buildrelay.utils.logging import get_logger

log = get_logger(__name__)

TEAM_PARAMETERS = "team-parameters"
TEAM_BUILD_PREFIX = "_team-build_"
TFGIT_PROVIDER = "TfGit"
REFS_PULL_SLASH = "refs/pull/"

BUILD_SOURCE_BRANCH = "Build.SourceBranch"
BUILD_REPOSITORY_PROVIDER = "Build.Repository.Provider"
BUILD_REPOSITORY_URI = "Build.Repository.Uri"
SYSTEM_TEAM_PROJECT = "System.TeamProject"
BUILD_SOURCE_VERSION = "Build.SourceVersion"
BUILD_REQUESTED_FOR = "Build.RequestedFor"
SYSTEM_TEAM_FOUNDATION_COLLECTION_URI = "System.TeamFoundationCollectionUri"


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def parse_uri(value: Any, field: str) -> str:
    """Return ``value`` if it is a well-formed absolute URI."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"Missing URI for '{field}'", field=field)
    if any(ch.isspace() for ch in value):
        raise InvalidInput(f"Malformed URI for '{field}': {value!r}", field=field)
    try:
        parts = urlsplit(value)
        # Accessing port validates the authority section
        parts.port
    except ValueError as exc:
        raise InvalidInput(f"Malformed URI for '{field}': {exc}", field=field) from exc
    if not parts.scheme:
        raise InvalidInput(f"URI for '{field}' is not absolute: {value!r}", field=field)
    return value


def _require_str(args: Mapping[str, Any], field: str) -> str:
    value = args.get(field)
    if not isinstance(value, str):
        raise InvalidInput(f"Expected a string value for '{field}'", field=field)
    return value


def _require_int(args: Mapping[str, Any], field: str) -> int:
    value = args.get(field)
    # bool is an int subclass; true/false is never a valid id
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInput(f"Expected a non-negative integer for '{field}'", field=field)
    return value


# ---------------------------------------------------------------------------
# JSON payloads
# ---------------------------------------------------------------------------

def translate_json(payload: Any) -> TriggerEvent | NoOp:
    """Translate a JSON build request.

    The presence of ``pullRequestId`` alone selects the pull request variant;
    there is no event-type field to consult.
    """
    if not isinstance(payload, Mapping):
        raise InvalidInput("Build request payload must be a JSON object")
    if TEAM_PARAMETERS not in payload:
        return NO_OP

    args = payload[TEAM_PARAMETERS]
    if not isinstance(args, Mapping):
        raise InvalidInput(f"'{TEAM_PARAMETERS}' must be a JSON object", field=TEAM_PARAMETERS)

    collection_uri = parse_uri(args.get("collectionUri"), "collectionUri")
    repo_uri = parse_uri(args.get("repoUri"), "repoUri")
    project_id = _require_str(args, "projectId")
    commit = _require_str(args, "commit")
    pushed_by = _require_str(args, "pushedBy")

    if "pullRequestId" in args:
        iteration_id = UNKNOWN_ITERATION
        if args.get("iterationId") is not None:
            iteration_id = _require_int(args, "iterationId")
        return PullRequestMerge(
            collection_uri=collection_uri,
            repo_uri=repo_uri,
            project_id=project_id,
            commit_id=commit,
            pushed_by=pushed_by,
            pull_request_id=_require_int(args, "pullRequestId"),
            iteration_id=iteration_id,
        )

    return CommitPush(
        collection_uri=collection_uri,
        repo_uri=repo_uri,
        project_id=project_id,
        commit_id=commit,
        pushed_by=pushed_by,
    )


# ---------------------------------------------------------------------------
# Flat parameter maps
# ---------------------------------------------------------------------------

def _values(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, Iterable):
        return [str(v) for v in raw]
    return [str(raw)]


def collect_team_parameters(
    params: Mapping[str, Any] | Iterable[tuple[str, str]],
    prefix: str = TEAM_BUILD_PREFIX,
) -> dict[str, str]:
    """Gather prefixed parameters, stripping the prefix.

    ``params`` maps each key to a list of values, or is an iterable of
    ``(key, value)`` pairs (a form multidict's ``items()``). Each prefixed key
    must carry exactly one value.
    """
    grouped: dict[str, list[str]] = {}
    if isinstance(params, Mapping):
        for key, raw in params.items():
            grouped[key] = _values(raw)
    else:
        for key, value in params:
            grouped.setdefault(key, []).append(value)

    team: dict[str, str] = {}
    for key, values in grouped.items():
        if not key.startswith(prefix):
            continue
        name = key[len(prefix):]
        if len(values) != 1:
            raise InvalidInput(f"Expected exactly 1 value for parameter '{name}'.", field=name)
        team[name] = values[0]
    return team


def determine_pull_request_id(source_branch: str | None) -> int | None:
    """Extract the pull request id from a ``refs/pull/<id>/<rest>`` ref."""
    if not source_branch or not source_branch.startswith(REFS_PULL_SLASH):
        return None
    id_slash_rest = source_branch[len(REFS_PULL_SLASH):]
    next_slash = id_slash_rest.find("/")
    if next_slash <= 0:
        return None
    id_text = id_slash_rest[:next_slash]
    if not id_text.isascii() or not id_text.isdigit():
        raise InvalidInput(
            f"Pull request id in '{source_branch}' is not a number", field=BUILD_SOURCE_BRANCH
        )
    return int(id_text, 10)


def translate_parameters(
    params: Mapping[str, Any] | Iterable[tuple[str, str]],
    prefix: str = TEAM_BUILD_PREFIX,
    provider: str = TFGIT_PROVIDER,
) -> TriggerEvent | NoOp:
    """Translate a legacy flat-parameter build request."""
    team = collect_team_parameters(params, prefix)

    repo_provider = team.get(BUILD_REPOSITORY_PROVIDER)
    if repo_provider is None or repo_provider.lower() != provider.lower():
        log.debug("trigger_provider_ignored", provider=repo_provider)
        return NO_OP

    collection_uri = parse_uri(
        team.get(SYSTEM_TEAM_FOUNDATION_COLLECTION_URI), SYSTEM_TEAM_FOUNDATION_COLLECTION_URI
    )
    repo_uri = parse_uri(team.get(BUILD_REPOSITORY_URI), BUILD_REPOSITORY_URI)
    project_id = team.get(SYSTEM_TEAM_PROJECT, "")
    commit = team.get(BUILD_SOURCE_VERSION, "")
    pushed_by = team.get(BUILD_REQUESTED_FOR, "")

    pull_request_id = determine_pull_request_id(team.get(BUILD_SOURCE_BRANCH))
    if pull_request_id is not None:
        return PullRequestMerge(
            collection_uri=collection_uri,
            repo_uri=repo_uri,
            project_id=project_id,
            commit_id=commit,
            pushed_by=pushed_by,
            pull_request_id=pull_request_id,
            iteration_id=UNKNOWN_ITERATION,
        )

    return CommitPush(
        collection_uri=collection_uri,
        repo_uri=repo_uri,
        project_id=project_id,
        commit_id=commit,
        pushed_by=pushed_by,
    )
