"""Typed errors for the Microsoft Graph and Exchange Online clients."""

from enum import Enum
from typing import Optional

import requests


class ErrorKind(Enum):
    """Coarse classification of a remote failure."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    THROTTLED = "throttled"
    SERVER = "server"
    NETWORK = "network"
    UNKNOWN = "unknown"


# Service error codes that mean the target object does not exist
NOT_FOUND_CODES = {
    'Request_ResourceNotFound',
    'ResourceNotFound',
    'ErrorItemNotFound',
    'ManagementObjectNotFoundException',
}

# Last-resort markers for services that only report the condition in prose.
# Matching on message text breaks if the service rewords its errors.
NOT_FOUND_MARKERS = ('not found', "couldn't be found", 'could not be found')


def classify_error(status_code: Optional[int], code: Optional[str] = None,
                   message: Optional[str] = None) -> ErrorKind:
    """Map an HTTP status, service error code and message to an ErrorKind.

    Status and code are authoritative; the message is only consulted when
    neither identifies the failure.
    """
    if status_code == 404 or (code and code in NOT_FOUND_CODES):
        return ErrorKind.NOT_FOUND
    if message and any(code_name in message for code_name in NOT_FOUND_CODES):
        return ErrorKind.NOT_FOUND
    if status_code == 401:
        return ErrorKind.UNAUTHORIZED
    if status_code == 403:
        return ErrorKind.FORBIDDEN
    if status_code == 429:
        return ErrorKind.THROTTLED
    if status_code is not None and status_code >= 500:
        return ErrorKind.SERVER

    if message:
        lowered = message.lower()
        if any(marker in lowered for marker in NOT_FOUND_MARKERS):
            return ErrorKind.NOT_FOUND

    return ErrorKind.UNKNOWN


def _parse_error_body(response: requests.Response):
    """Extract (code, message) from a Graph or Exchange admin error body."""
    try:
        body = response.json()
    except ValueError:
        return None, response.text[:500] or None

    if not isinstance(body, dict):
        return None, str(body)[:500]

    error = body.get('error')
    if isinstance(error, dict):
        code = error.get('code')
        message = error.get('message')
        details = error.get('details') or []
        # Exchange admin API nests the cmdlet exception in details
        for detail in details:
            if isinstance(detail, dict) and detail.get('message'):
                message = f"{message} {detail['message']}" if message else detail['message']
        return code, message

    return None, body.get('message') or str(body)[:500]


class M365Error(Exception):
    """A failed call against a Microsoft 365 service."""

    service = 'm365'

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN,
                 status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code
        self.code = code

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    @classmethod
    def from_response(cls, response: requests.Response) -> 'M365Error':
        code, message = _parse_error_body(response)
        message = message or f"HTTP {response.status_code}"
        kind = classify_error(response.status_code, code, message)
        return cls(message, kind=kind, status_code=response.status_code, code=code)

    @classmethod
    def from_exception(cls, exc: requests.RequestException) -> 'M365Error':
        return cls(f"{cls.service} request failed: {exc}", kind=ErrorKind.NETWORK)

    def __str__(self) -> str:
        parts = [self.message]
        if self.code:
            parts.append(f"[{self.code}]")
        if self.status_code:
            parts.append(f"(HTTP {self.status_code})")
        return ' '.join(parts)


class GraphAPIError(M365Error):
    """Microsoft Graph (directory) failure."""

    service = 'Graph'


class ExchangeAPIError(M365Error):
    """Exchange Online admin API (mailbox) failure."""

    service = 'Exchange'


class AuthenticationError(M365Error):
    """Token acquisition failure."""

    service = 'Authentication'
