"""Booking state machine.

States: pending → confirmed → in-progress → completed
        pending | confirmed | in-progress → cancelled

Completing straight from ``confirmed`` is allowed on purpose: a provider who
never pressed "start" must still be able to close the job.
"""

from enum import Enum

from app.core.exceptions import InvalidTransition


class BookingStatus(str, Enum):
    """Booking status values as stored."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingRole(str, Enum):
    """The part an actor plays on one specific booking."""

    CUSTOMER = "customer"
    PROVIDER = "provider"
    ADMIN = "admin"


class BookingAction(str, Enum):
    """Lifecycle operations that move a booking between states."""

    CONFIRM = "confirm"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


BOOKING_TRANSITIONS: dict[str, set[str]] = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {
        BookingStatus.IN_PROGRESS.value,
        BookingStatus.COMPLETED.value,
        BookingStatus.CANCELLED.value,
    },
    BookingStatus.IN_PROGRESS.value: {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value},
    BookingStatus.COMPLETED.value: set(),
    BookingStatus.CANCELLED.value: set(),
}

ACTION_TARGETS: dict[BookingAction, BookingStatus] = {
    BookingAction.CONFIRM: BookingStatus.CONFIRMED,
    BookingAction.START: BookingStatus.IN_PROGRESS,
    BookingAction.COMPLETE: BookingStatus.COMPLETED,
    BookingAction.CANCEL: BookingStatus.CANCELLED,
}

# Statuses each action may start from. Narrower than BOOKING_TRANSITIONS for
# START (only from confirmed).
ACTION_SOURCES: dict[BookingAction, frozenset[str]] = {
    BookingAction.CONFIRM: frozenset({BookingStatus.PENDING.value}),
    BookingAction.START: frozenset({BookingStatus.CONFIRMED.value}),
    BookingAction.COMPLETE: frozenset(
        {BookingStatus.CONFIRMED.value, BookingStatus.IN_PROGRESS.value}
    ),
    BookingAction.CANCEL: frozenset(
        {
            BookingStatus.PENDING.value,
            BookingStatus.CONFIRMED.value,
            BookingStatus.IN_PROGRESS.value,
        }
    ),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value})


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, target: str) -> bool:
    return target in BOOKING_TRANSITIONS.get(current, set())


def assert_booking_transition(current: str, action: BookingAction) -> str:
    """Validate that ``action`` may run from ``current``.

    Args:
        current: Current booking status
        action: Requested lifecycle action

    Returns:
        The target status for the action.

    Raises:
        InvalidTransition: If the action is not allowed from ``current``
    """
    target = ACTION_TARGETS[action].value
    if current not in ACTION_SOURCES[action] or not can_transition(current, target):
        raise InvalidTransition(action.value, current, target)
    return target
