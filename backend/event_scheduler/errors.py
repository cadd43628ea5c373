"""
Scheduling engine error taxonomy.

- ScheduleConfigurationError: the event cannot be built or packed as configured
  (too few teams, no fields, no availability, calendar exhausted on an
  open-ended event). Rejects the whole operation.
- ScheduleWindowExceededError: a match does not fit before a fixed event end.
  AutoRescheduleEndLimitError is the same condition raised from the
  finalize-triggered re-pack, after the result was already recorded.
- MatchUpdateError: a single-match edit was rejected.

Callers match window exhaustion either by type or by the
"no available time slots remaining" message.
"""
from typing import List, Optional

WINDOW_EXCEEDED_MESSAGE = "No available time slots remaining for scheduling"


class SchedulerError(Exception):
    """Base exception for scheduling engine errors"""

    code = "SCHEDULER_ERROR"


class ScheduleConfigurationError(SchedulerError):
    """Event configuration cannot produce a schedule"""

    code = "SCHEDULE_CONFIGURATION"


class ScheduleWindowExceededError(SchedulerError):
    """No remaining calendar capacity fits a match before the fixed event end"""

    code = "SCHEDULE_WINDOW_EXCEEDED"

    def __init__(self, match_id: Optional[str] = None, detail: Optional[str] = None):
        self.match_id = match_id
        self.detail = detail
        message = WINDOW_EXCEEDED_MESSAGE
        if match_id:
            message += f" (match {match_id})"
        if detail:
            message += f". {detail}"
        super().__init__(message)


class AutoRescheduleEndLimitError(ScheduleWindowExceededError):
    """Finalize succeeded but the downstream re-pack ran past the event end"""

    code = "AUTO_RESCHEDULE_END_LIMIT"

    def __init__(
        self,
        finalized_match_id: str,
        match_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        self.finalized_match_id = finalized_match_id
        super().__init__(match_id=match_id, detail=detail)


class MatchUpdateError(SchedulerError):
    """Base exception for single-match updates"""

    code = "MATCH_UPDATE_ERROR"


class MatchNotFoundError(MatchUpdateError):
    code = "MATCH_NOT_FOUND"

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class MatchUpdateConflictError(MatchUpdateError):
    """Edit collides with another booking or breaks eligibility"""

    code = "MATCH_UPDATE_CONFLICT"

    def __init__(self, message: str, match_ids: Optional[List[str]] = None):
        self.match_ids = list(match_ids or [])
        super().__init__(message)


class MatchUpdateValidationError(MatchUpdateError):
    """Edit is malformed or not allowed in the match's current state"""

    code = "MATCH_UPDATE_INVALID"
