"""
Everscale client error model

This module provides the error handling framework for the standalone client.
Component errors carry a machine-readable code; the provider surface converts
them into ``ProviderRpcError`` with a ``"{method}: {detail}"`` message.
"""

from __future__ import annotations
import json
from typing import Optional, Dict, Any
from enum import IntEnum


class ErrorCode(IntEnum):
    """Client error codes."""

    # Success
    OK = 0

    # General errors
    UNKNOWN = 1
    INVALID_REQUEST = 2
    INTERNAL = 3

    # Network errors (200-299)
    NETWORK_ERROR = 200
    CONNECTION_FAILED = 201

    # Message delivery errors (400-499)
    MESSAGE_EXPIRED = 400
    EXECUTION_FAILED = 401

    # Key/Account errors (700-799)
    SIGNER_NOT_FOUND = 701


class ClientError(Exception):
    """
    Base class for all client errors.

    Provides structured error information: a code, optional details and the
    underlying cause.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """
        Initialize a client error.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "code": int(self.code),
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(ClientError):
    """Malformed request parameters."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details, cause)


class ConnectionError(ClientError):
    """No candidate endpoint of a preset could be reached."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.CONNECTION_FAILED, details, cause)

    @property
    def failures(self) -> list:
        """Per-candidate failure reasons, in candidate order."""
        return self.details.get("failures", [])


class SignerNotFound(ClientError):
    """Keystore or accounts storage lookup miss."""

    def __init__(self, message: str = "Signer not found for public key",
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.SIGNER_NOT_FOUND, details, cause)


class MessageExpired(ClientError):
    """Retry budget exhausted and local fallback found no confirmation."""

    BASE_MESSAGE = "Message expired"

    def __init__(self, exit_code: Optional[int] = None, reason: Optional[str] = None,
                 cause: Optional[Exception] = None):
        message = self.BASE_MESSAGE
        if reason is not None:
            message = f"{message}. {reason}"
        elif exit_code is not None:
            message = f"{message}. Possible exit code: {exit_code}"

        details = {"exitCode": exit_code} if exit_code is not None else None
        super().__init__(message, ErrorCode.MESSAGE_EXPIRED, details, cause)
        self.exit_code = exit_code


class ExecutionError(ClientError):
    """Local execution could not run (as opposed to running and aborting)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 cause: Optional[Exception] = None):
        super().__init__(message, ErrorCode.EXECUTION_FAILED, details, cause)


class ProviderRpcError(Exception):
    """
    User-visible provider error.

    The message always has the form ``"{method}: {detail}"``.
    """

    def __init__(self, code: int, message: str, data: Any = None):
        if not isinstance(code, int):
            raise TypeError('"code" must be an integer')
        if not message or not isinstance(message, str):
            raise TypeError('"message" must be a nonempty string')

        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data

    def serialize(self) -> Dict[str, Any]:
        """JSON-RPC style error object."""
        serialized: Dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            serialized["data"] = self.data
        return serialized

    def __str__(self) -> str:
        return self.message

    def to_json(self) -> str:
        return json.dumps(self.serialize(), indent=2, default=str)

    @classmethod
    def for_method(cls, method: str, detail: str, code: int = ErrorCode.INVALID_REQUEST,
                   data: Any = None) -> 'ProviderRpcError':
        """Build an error for a provider method."""
        return cls(int(code), f"{method}: {detail}", data)

    @classmethod
    def from_client_error(cls, method: str, error: ClientError) -> 'ProviderRpcError':
        """Wrap a component error, keeping its code and details."""
        return cls(int(error.code), f"{method}: {error.message}", error.details or None)


__all__ = [
    "ErrorCode",
    "ClientError",
    "ValidationError",
    "ConnectionError",
    "SignerNotFound",
    "MessageExpired",
    "ExecutionError",
    "ProviderRpcError",
]
