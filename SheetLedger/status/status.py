"""Status definitions and exceptions for SheetLedger.

This module provides:
    - Status: enumeration of possible service states
    - STATUS_MESSAGE: user-facing messages for each status
    - get_message: retrieve the message for a status
    - BaseStatusException: base exception carrying a Status
    - Specific exceptions (e.g., ProvisioningFailedException) raised by the core services
"""
import enum
import logging
from typing import Dict


class Status(enum.StrEnum):
    """Enumeration of service status codes."""
    UnknownStatus = enum.auto()
    Okay = enum.auto()

    # Config status
    ServerConfigNotFound = enum.auto()
    ServerConfigInvalid = enum.auto()
    NotConfigured = enum.auto()

    # Authentication status
    CredsInvalid = enum.auto()
    NotAuthenticated = enum.auto()

    # Remote service status
    SpreadsheetNotFound = enum.auto()
    ServiceUnavailable = enum.auto()
    RemoteServiceError = enum.auto()

    # Directory and collection status
    UserNotFound = enum.auto()
    DuplicateIdentity = enum.auto()
    ProvisioningFailed = enum.auto()
    StaleHandle = enum.auto()

    # Record status
    InvalidRecord = enum.auto()


STATUS_MESSAGE: Dict[Status, str] = {
    Status.UnknownStatus: 'Unknown status. Please check the server logs.',
    Status.Okay: 'Everything is okay.',

    Status.ServerConfigNotFound: 'Could not find the server config.',
    Status.ServerConfigInvalid: 'The server config seems to be incomplete, or contains invalid values.',
    Status.NotConfigured: 'Google Sheets service not configured. Service account credentials or the master spreadsheet id are missing.',

    Status.CredsInvalid: 'Could not load the service account credentials.',
    Status.NotAuthenticated: 'Authentication with Google failed. Check the service account credentials.',

    Status.SpreadsheetNotFound: 'Could not find the master spreadsheet. Is it shared with the service account?',
    Status.ServiceUnavailable: 'Google Sheets service is unavailable. Please check your connection.',
    Status.RemoteServiceError: 'Google Sheets rejected the request.',

    Status.UserNotFound: 'User not found.',
    Status.DuplicateIdentity: 'A user with this email already exists.',
    Status.ProvisioningFailed: 'Could not create a personal sheet for the user.',
    Status.StaleHandle: 'The personal sheet of the user could not be opened or recreated.',

    Status.InvalidRecord: 'The expense is incomplete, or contains invalid values.',
}


def get_message(status: Status) -> str:
    """
    Get the message for a given status.

    Args:
        status (Status): The status enum.

    Returns:
        str: The message associated with the status.
    """
    return STATUS_MESSAGE.get(status, 'Unknown status')


class BaseStatusException(Exception):
    """Base exception for status-based errors in SheetLedger.

    Attributes:
        status (Status): Status code associated with this error.
        status_message (str): User-facing message for the status.
        detail (str): The additional context passed on construction, if any.

    Args:
        message (str): Optional additional context for the error.
    """
    status = Status.UnknownStatus

    def __init__(self, message: str = None):
        self.status_message = get_message(self.status)
        self.detail = message or ''
        exception_message = f'{self.status_message} {message}' if message else self.status_message
        super().__init__(exception_message)

        logging.error(exception_message)


class UnknownException(BaseStatusException):
    """Exception for an unknown error during status processing."""
    pass


class ServerConfigNotFoundException(BaseStatusException):
    """Exception raised when the server configuration file cannot be found."""
    status = Status.ServerConfigNotFound


class ServerConfigInvalidException(BaseStatusException):
    """Exception raised when the server configuration is invalid or malformed."""
    status = Status.ServerConfigInvalid


class NotConfiguredException(BaseStatusException):
    """Exception raised when credentials or the master spreadsheet id are absent."""
    status = Status.NotConfigured


class CredsInvalidException(BaseStatusException):
    """Exception raised when the service account credentials are invalid or malformed."""
    status = Status.CredsInvalid


class AuthenticationExceptionException(BaseStatusException):
    """Exception raised when the service account cannot obtain an access token."""
    status = Status.NotAuthenticated


class SpreadsheetNotFoundException(BaseStatusException):
    """Exception raised when the master spreadsheet cannot be accessed."""
    status = Status.SpreadsheetNotFound


class ServiceUnavailableException(BaseStatusException):
    """Exception raised when the Google Sheets service is unavailable."""
    status = Status.ServiceUnavailable


class RemoteServiceException(BaseStatusException):
    """Exception raised when the Google Sheets API returns an error."""
    status = Status.RemoteServiceError


class UserNotFoundException(BaseStatusException):
    """Exception raised when a directory lookup misses where presence was required."""
    status = Status.UserNotFound


class DuplicateIdentityException(BaseStatusException):
    """Exception raised when inserting a profile whose identity is already present."""
    status = Status.DuplicateIdentity


class ProvisioningFailedException(BaseStatusException):
    """Exception raised when a private collection cannot be created."""
    status = Status.ProvisioningFailed


class StaleHandleException(BaseStatusException):
    """Exception raised when a recorded handle is gone and re-provisioning failed too."""
    status = Status.StaleHandle


class InvalidRecordException(BaseStatusException):
    """Exception raised when an expense record fails validation."""
    status = Status.InvalidRecord
