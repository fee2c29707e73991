"""Error hierarchy for the availability engine.

Read calls against the Schedule/Roster API use tenacity retry decorators that
classify transient failures (should retry) vs permanent failures (should not
retry). Writes are never retried: a replace-the-set write retried against
stale local state could undo someone else's edit.

Import format problems are NOT exceptions. They are collected on
ImportRow.errors so the operator can see every bad cell at once.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    def list_teachers(...):
        ...
"""


class SchedulingError(Exception):
    """Base exception for all availability engine errors."""

    pass


class TransientError(SchedulingError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, connection resets, 502/503/504 responses.
    """

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded - needs longer backoff.

    Inherits from TransientError so tenacity will retry it.
    """

    pass


class PermanentError(SchedulingError):
    """Failure that won't succeed on retry.

    Examples: 4xx validation errors, unknown person ids, illegal edit transitions.
    """

    pass


class AuthenticationError(PermanentError):
    """API token missing, expired or lacking permission (401/403)."""

    pass


class UnknownPersonError(PermanentError):
    """A toggle or mutation names a person absent from every loaded roster snapshot."""

    def __init__(self, person_id: str) -> None:
        super().__init__(f"Person not found in any loaded roster: {person_id}")
        self.person_id = person_id


class MissingKeyError(PermanentError):
    """A person has no external key (email/username) to address a write to."""

    def __init__(self, person_id: str) -> None:
        super().__init__(f"No external key for person: {person_id}")
        self.person_id = person_id


class ConcurrentBatchError(PermanentError):
    """A batch touches a person who already has a batch in flight.

    Two full-set writes for the same person racing each other would let the
    later response silently discard the other's edits.
    """

    def __init__(self, keys: set[str]) -> None:
        super().__init__(
            f"Batch already in flight for: {', '.join(sorted(keys))}"
        )
        self.keys = keys


class InvalidTransitionError(PermanentError):
    """An optimistic edit was moved through an illegal state transition."""

    pass


class ScheduleWriteError(SchedulingError):
    """The batch write call failed.

    Surfaced once to the operator; the triggering edit is rolled back and
    must be retried manually.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
