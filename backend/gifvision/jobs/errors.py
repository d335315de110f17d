"""
Scheduler error types.

All errors inherit from SchedulerError for easy catching.
Render failures are not raised here: they become Failed events.
"""


class SchedulerError(Exception):
    """Base exception for all scheduler failures."""
    pass


class JobNotFoundError(SchedulerError):
    """Raised when no events are known for a job ID."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidStateTransitionError(SchedulerError):
    """Raised when a slot is driven through an illegal state change."""

    def __init__(self, slot: str, current_state: str, target_state: str):
        self.slot = slot
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid slot state transition for {slot}: "
            f"{current_state} -> {target_state}"
        )


class SchedulerClosedError(SchedulerError):
    """Raised when submitting to a scheduler that has been shut down."""

    def __init__(self):
        super().__init__("Render scheduler is shut down")
