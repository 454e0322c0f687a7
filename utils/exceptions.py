class ServiceError(Exception):
    """Base exception for service layer errors."""


class NotFoundError(ServiceError):
    pass


class ExternalServiceError(ServiceError):
    pass


class ToolNotFoundError(ExternalServiceError):
    """The external binary could not be executed at all."""


class DownloadFailedError(ExternalServiceError):
    """Every download strategy failed; carries the last attempt's error text."""

    def __init__(self, last_error, attempts=None):
        super().__init__(f"All download strategies failed. Last error: {last_error}")
        self.last_error = last_error
        self.attempts = list(attempts or [])


class StorageError(ServiceError):
    pass
