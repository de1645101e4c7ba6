# -*- coding: utf-8 -*-

from typing import Optional


class TallyError(Exception):
    """
    Base error for the app.
    `code` groups errors by failure domain, `cause` keeps the original error.
    """

    code = "TALLY_ERROR"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.code}: {self.message} (caused by: {self.cause})"
        return f"{self.code}: {self.message}"


class ValidationError(TallyError):
    code = "VALIDATION_ERROR"


class ConfigError(TallyError):
    code = "CONFIG_ERROR"


class DurationError(TallyError, ValueError):
    code = "VALIDATION_ERROR"


class CredentialsError(TallyError):
    code = "AUTH_ERROR"


class StorageError(TallyError):
    code = "DATABASE_ERROR"


class SyncError(TallyError):
    code = "SYNC_ERROR"


class RowNumberError(SyncError):
    pass


class RetryExhaustedError(SyncError):
    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(
            f"failed to sync sessions after {attempts} attempts", cause=last_error
        )
        self.attempts = attempts
        self.last_error = last_error
