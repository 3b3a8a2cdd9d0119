"""Exception hierarchy shared by the HR portal services.

Services raise these; endpoints translate them into HTTP errors or,
when the failure is not fatal, into response notifications.
"""
from typing import Optional, Dict, Any


class HRPortalError(Exception):
    """Base exception for all HR portal errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ParsingError(HRPortalError):
    """Malformed CSV content, dates or payloads."""
    def __init__(self, message: str, row_number: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.row_number = row_number
        super().__init__(message, details)


class StorageError(HRPortalError):
    """Reading or writing a persisted data slice failed."""
    def __init__(self, message: str, key: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.key = key
        super().__init__(message, details)


class NetworkError(HRPortalError):
    """The remote sync endpoint could not be reached or answered badly."""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        super().__init__(message, details)


class SyncConflictError(HRPortalError):
    """Local and remote datasets were both modified since the last sync."""
    def __init__(self, local_version: int, remote_version: int):
        self.local_version = local_version
        self.remote_version = remote_version
        super().__init__(
            f"Remote dataset (v{remote_version}) changed while local edits are pending "
            f"(last synced v{local_version})"
        )


class NotFoundError(HRPortalError):
    """A requested record is not in storage."""
    pass
