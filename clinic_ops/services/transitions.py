"""Appointment transition table.

The lifecycle is an explicit finite map from ``(status, action)`` to the
target status. The table is checked once at import for edges out of terminal
states, dead-end states and states unreachable from SCHEDULED.
"""

from collections.abc import Mapping

from clinic_ops.models.appointment import AppointmentAction, AppointmentStatus

TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

INITIAL_STATUS = AppointmentStatus.SCHEDULED

TRANSITIONS: Mapping[tuple[AppointmentStatus, AppointmentAction], AppointmentStatus] = {
    (AppointmentStatus.SCHEDULED, AppointmentAction.CONFIRM): AppointmentStatus.CONFIRMED,
    (AppointmentStatus.SCHEDULED, AppointmentAction.CHECKIN): AppointmentStatus.CHECKED_IN,
    (AppointmentStatus.SCHEDULED, AppointmentAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.SCHEDULED, AppointmentAction.NO_SHOW): AppointmentStatus.NO_SHOW,
    (AppointmentStatus.CONFIRMED, AppointmentAction.CHECKIN): AppointmentStatus.CHECKED_IN,
    (AppointmentStatus.CONFIRMED, AppointmentAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CONFIRMED, AppointmentAction.NO_SHOW): AppointmentStatus.NO_SHOW,
    (AppointmentStatus.CHECKED_IN, AppointmentAction.START): AppointmentStatus.IN_PROGRESS,
    (AppointmentStatus.CHECKED_IN, AppointmentAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.IN_PROGRESS, AppointmentAction.COMPLETE): AppointmentStatus.COMPLETED,
    (AppointmentStatus.IN_PROGRESS, AppointmentAction.CANCEL): AppointmentStatus.CANCELLED,
}


class TransitionTableError(Exception):
    """Raised when the transition table is structurally inconsistent."""

    pass


def validate_transition_table(
    table: Mapping[tuple[AppointmentStatus, AppointmentAction], AppointmentStatus],
    initial: AppointmentStatus = INITIAL_STATUS,
    terminal: frozenset[AppointmentStatus] = TERMINAL_STATUSES,
) -> None:
    """Check a transition table for dangling or unreachable states.

    Raises:
        TransitionTableError: If a terminal state has an outgoing edge, a
            non-terminal state has none, or a state cannot be reached from
            ``initial``.
    """
    sources = {source for source, _ in table}

    leaking = sources & terminal
    if leaking:
        names = ", ".join(sorted(s.value for s in leaking))
        raise TransitionTableError(f"Terminal states have outgoing edges: {names}")

    dead_ends = set(AppointmentStatus) - terminal - sources
    if dead_ends:
        names = ", ".join(sorted(s.value for s in dead_ends))
        raise TransitionTableError(f"Non-terminal states without outgoing edges: {names}")

    reachable = {initial}
    frontier = [initial]
    while frontier:
        current = frontier.pop()
        for (source, _), target in table.items():
            if source == current and target not in reachable:
                reachable.add(target)
                frontier.append(target)

    unreachable = set(AppointmentStatus) - reachable
    if unreachable:
        names = ", ".join(sorted(s.value for s in unreachable))
        raise TransitionTableError(f"States unreachable from {initial.value}: {names}")


def next_status(
    status: AppointmentStatus,
    action: AppointmentAction,
) -> AppointmentStatus | None:
    """Return the target status for ``action`` from ``status``, or None."""
    return TRANSITIONS.get((status, action))


def allowed_actions(status: AppointmentStatus) -> list[AppointmentAction]:
    """Return the actions legal from ``status`` in declaration order."""
    return [action for action in AppointmentAction if (status, action) in TRANSITIONS]


def is_terminal(status: AppointmentStatus) -> bool:
    return status in TERMINAL_STATUSES


validate_transition_table(TRANSITIONS)
