"""
Domain errors raised by the engine and the check-in orchestrator.

Only the HTTP layer turns these into responses. `transient` tells the caller
whether retrying the same request can succeed.
"""


class StreakError(Exception):
    code = "streak_error"
    status_code = 400
    transient = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StreakError):
    code = "validation_error"
    status_code = 400


class NotFoundError(StreakError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(StreakError):
    """Per-user atomic section could not be acquired after all retries."""
    code = "conflict"
    status_code = 409
    transient = True


class InvariantViolation(StreakError):
    """Stored streak counters are corrupt. Never repaired silently."""
    code = "invariant_violation"
    status_code = 500


class AlreadyCompletedError(StreakError):
    code = "already_completed"
    status_code = 409

    def __init__(self, message: str = "Today has already been marked complete"):
        super().__init__(message)


class AlreadyFrozenError(StreakError):
    code = "already_frozen"
    status_code = 409

    def __init__(self, message: str = "Streak is already frozen for this day"):
        super().__init__(message)


class ActivityLimitError(StreakError):
    code = "problem_limit_exceeded"
    status_code = 400

    def __init__(self, limit: int):
        super().__init__(f"Maximum {limit} problems per day allowed")
        self.limit = limit


class InsufficientGemsError(StreakError):
    code = "insufficient_gems"
    status_code = 400

    def __init__(self, needed: int, balance: int):
        super().__init__(f"Freezing costs {needed} gems, balance is {balance}")
        self.needed = needed
        self.balance = balance
