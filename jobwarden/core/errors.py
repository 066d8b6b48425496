"""Domain exceptions raised by validation and lookup helpers.

The orchestrator catches these and turns them into failed `ApiResponse`
envelopes; they never escape a public orchestrator operation.
"""


class JobWardenError(Exception):
    """Base class for all jobwarden errors."""

    error_code: str = "error"


class JobValidationError(JobWardenError):
    """Bad cron expression, bad URL, unknown job class or malformed JSON."""

    error_code = "validation_error"


class DuplicateJobError(JobWardenError):
    """A job with the same name and group already exists."""

    error_code = "duplicate_job"


class JobNotFoundError(JobWardenError):
    """No stored job with the requested identity."""

    error_code = "not_found"


class StoreError(JobWardenError):
    """A store write reported failure."""

    error_code = "store_error"
