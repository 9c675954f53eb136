"""Package status transition table."""

from __future__ import annotations

from apiwave.core.package.models import PackageStatus

S = PackageStatus

TERMINAL_PACKAGE_STATUSES = frozenset({S.COMPLETE, S.CANCELLED})

# Forward progression plus the dedicated failure state of each stage.
# CANCELLED is added to every non-terminal state below.
_FORWARD: dict[PackageStatus, frozenset[PackageStatus]] = {
    S.REQUESTED: frozenset({S.SPEC_FETCHED, S.FAILED_SPEC_FETCH}),
    S.SPEC_FETCHED: frozenset({S.AI_SUCCESS, S.FAILED_GENERATION}),
    S.AI_SUCCESS: frozenset({S.EXECUTION_IN_PROGRESS, S.FAILED_EXECUTION}),
    S.EXECUTION_IN_PROGRESS: frozenset({S.EXECUTION_COMPLETE, S.FAILED_EXECUTION}),
    S.EXECUTION_COMPLETE: frozenset({S.QA_EVAL_IN_PROGRESS, S.COMPLETE}),
    S.QA_EVAL_IN_PROGRESS: frozenset({S.QA_EVAL_DONE, S.COMPLETE}),
    S.QA_EVAL_DONE: frozenset({S.COMPLETE}),
    S.FAILED_SPEC_FETCH: frozenset(),
    S.FAILED_GENERATION: frozenset(),
    S.FAILED_EXECUTION: frozenset(),
    S.COMPLETE: frozenset(),
    S.CANCELLED: frozenset(),
}

PACKAGE_TRANSITIONS: dict[PackageStatus, frozenset[PackageStatus]] = {
    status: targets if status in TERMINAL_PACKAGE_STATUSES else targets | {S.CANCELLED}
    for status, targets in _FORWARD.items()
}

# (current, target) -> allowed, for every pair of states
TRANSITION_MATRIX: dict[tuple[PackageStatus, PackageStatus], bool] = {
    (current, target): target in PACKAGE_TRANSITIONS[current] or target == current
    for current in PackageStatus
    for target in PackageStatus
}


def allowed_targets(status: PackageStatus) -> frozenset[PackageStatus]:
    return PACKAGE_TRANSITIONS[status]


def can_transition(current: PackageStatus, target: PackageStatus) -> bool:
    """Whether a package may move from current to target.

    A transition to the current state is always allowed (no-op).
    """
    return TRANSITION_MATRIX[(current, target)]


def is_terminal(status: PackageStatus) -> bool:
    return status in TERMINAL_PACKAGE_STATUSES
