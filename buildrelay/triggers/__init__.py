"""Inbound build request translation."""

from .events import NO_OP, UNKNOWN_ITERATION, CommitPush, NoOp, PullRequestMerge, TriggerEvent
from .translator import determine_pull_request_id, translate_json, translate_parameters

__all__ = [
    "NO_OP",
    "UNKNOWN_ITERATION",
    "CommitPush",
    "NoOp",
    "PullRequestMerge",
    "TriggerEvent",
    "determine_pull_request_id",
    "translate_json",
    "translate_parameters",
]
