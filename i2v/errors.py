"""Domain exceptions. Each carries the HTTP status and error code it maps to."""


class ServiceError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str | None = None):
        self.message = message or (self.__doc__ or self.code).strip()
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


class ConfigurationError(ServiceError):
    """Rendering backend is not configured."""

    status_code = 500
    code = "CONFIGURATION_ERROR"


class RemoteBackendError(ServiceError):
    """Rendering backend is unavailable, please try again later."""

    status_code = 503
    code = "BACKEND_UNAVAILABLE"

    def __init__(self, message: str | None = None, http_status: int | None = None):
        super().__init__(message)
        self.http_status = http_status

    @property
    def is_not_found(self) -> bool:
        return self.http_status == 404

    @property
    def public_message(self) -> str:
        # upstream details stay in the logs
        return (self.__doc__ or self.code).strip()


class QueueFullError(ServiceError):
    """Rendering queue is full, please try again later."""

    status_code = 503
    code = "QUEUE_FULL"


class SubmissionRejected(ServiceError):
    status_code = 400
    code = "SUBMISSION_REJECTED"


class QuotaExceededError(SubmissionRejected):
    """Daily generation quota exceeded."""

    status_code = 429
    code = "QUOTA_EXCEEDED"


class ConcurrencyLimitError(SubmissionRejected):
    """Too many jobs are already running for this account."""

    status_code = 429
    code = "TOO_MANY_ACTIVE_JOBS"


class FeatureNotAllowedError(SubmissionRejected):
    """This option requires a paid plan."""

    status_code = 403
    code = "FEATURE_REQUIRES_PAID_TIER"


class EntryNotFoundError(ServiceError):
    """Entry not found."""

    status_code = 404
    code = "ENTRY_NOT_FOUND"


class InvalidEntryStateError(ServiceError):
    """Entry is not in a state that allows this operation."""

    status_code = 409
    code = "INVALID_STATE"


class JobMismatchError(ServiceError):
    """Job id does not match this entry."""

    status_code = 403
    code = "JOB_ID_MISMATCH"
