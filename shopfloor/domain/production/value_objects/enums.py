"""Domain enums for production tracking."""

from enum import Enum


class ItemStatus(str, Enum):
    """Production item (and run) status enumeration."""

    PENDING = "pending"  # Waiting on an upstream station
    QUEUED = "queued"  # Eligible to start, not yet started
    IN_PROGRESS = "in_progress"  # Being worked on
    BLOCKED = "blocked"  # Operator-reported stoppage
    DONE = "done"  # Finished at this station

    @property
    def is_system_assigned(self) -> bool:
        """pending/queued are set by the scheduler, never by an operator."""
        return self in {ItemStatus.PENDING, ItemStatus.QUEUED}

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal (cannot transition further)."""
        return self == ItemStatus.DONE

    def can_transition_to(self, target_status: "ItemStatus") -> bool:
        """Check if an item can move from this status to target status."""
        valid_transitions = {
            ItemStatus.PENDING: {
                ItemStatus.QUEUED,
                ItemStatus.IN_PROGRESS,
                ItemStatus.BLOCKED,
            },
            ItemStatus.QUEUED: {
                ItemStatus.PENDING,
                ItemStatus.IN_PROGRESS,
                ItemStatus.BLOCKED,
            },
            ItemStatus.IN_PROGRESS: {ItemStatus.BLOCKED, ItemStatus.DONE},
            ItemStatus.BLOCKED: {ItemStatus.IN_PROGRESS},
            ItemStatus.DONE: set(),  # Terminal state
        }
        return target_status in valid_transitions.get(self, set())


class OperatorAction(str, Enum):
    """Operator-issued actions on a production item."""

    START = "start"
    MARK_DONE = "mark_done"
    MARK_BLOCKED = "mark_blocked"
    RESUME = "resume"
