"""
Custom Exceptions for awsync
============================

This module defines the exception hierarchy used throughout the
application for consistent error handling and reporting.

Exception Hierarchy
-------------------
::

    AwsyncError (base)
    ├── AWSClientError
    │   ├── CredentialsError
    │   ├── RegionError
    │   ├── ServiceError
    │   └── CacheReadError
    ├── FetchError
    │   ├── AccessDeniedError
    │   └── UnsupportedResourceTypeError
    ├── GraphError
    │   └── RelationshipResolutionError
    └── AggregateSyncError

Example
-------
>>> from awsync.core.exceptions import AggregateSyncError
>>>
>>> result = service.fetch_resources()
>>> if result.error is not None:
...     print(f"Partial sync: {result.error}")
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class AwsyncError(Exception):
    """
    Base exception for all awsync errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.

    Example
    -------
    >>> raise AwsyncError("Something went wrong", details={"code": 500})
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# AWS Client Exceptions
# =============================================================================


class AWSClientError(AwsyncError):
    """
    Base exception for AWS client-related errors.

    Raised while building the session or a service client, or while
    obtaining credentials for them.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        API the client was being built for.
    region : str, optional
        Region of the failing client.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        region: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.region = region
        full_details = details or {}
        if service:
            full_details["service"] = service
        if region:
            full_details["region"] = region
        super().__init__(message, full_details)


class CredentialsError(AWSClientError):
    """
    Raised when AWS credentials cannot be obtained from the underlying provider.

    A failed retrieval is never cached.

    Example
    -------
    >>> raise CredentialsError(
    ...     "no AWS credentials resolved",
    ...     details={"profile": "admin"},
    ... )
    """

    pass


class RegionError(AWSClientError):
    """Raised when there's an issue with the specified AWS region."""

    pass


class ServiceError(AWSClientError):
    """Raised when a client for a specific AWS service cannot be created."""

    pass


class CacheReadError(AWSClientError):
    """
    Raised when a credential cache file exists but cannot be read or parsed.

    The credential cache treats this as a cache miss.

    Parameters
    ----------
    message : str
        Human-readable error message.
    path : str, optional
        Path of the offending cache file.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message, details={"path": path} if path else None)


# =============================================================================
# Fetch Exceptions
# =============================================================================


class FetchError(AwsyncError):
    """
    Base exception for errors raised while listing resources of one type.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_type : str, optional
        The resource type being fetched.
    service : str, optional
        The service declaring the resource type.
    details : dict, optional
        Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        service: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.resource_type = resource_type
        self.service = service
        full_details = details or {}
        if resource_type:
            full_details["resource_type"] = resource_type
        if service:
            full_details["service"] = service
        super().__init__(message, full_details)


class AccessDeniedError(FetchError):
    """
    Provider-agnostic marker for an authorization failure while fetching.

    Use the :data:`ERR_FETCH_ACCESS_DENIED` instance rather than raising
    new ones.
    """

    pass


class UnsupportedResourceTypeError(FetchError):
    """
    Raised when a fetch is requested for a type the service does not declare.

    Example
    -------
    >>> raise UnsupportedResourceTypeError(
    ...     "aws ec2: unsupported fetch for type bucket",
    ...     resource_type="bucket",
    ...     service="ec2",
    ... )
    """

    pass


ERR_FETCH_ACCESS_DENIED = AccessDeniedError("access denied to cloud resource")


# =============================================================================
# Graph Exceptions
# =============================================================================


class GraphError(AwsyncError):
    """Raised on a conflicting resource insertion or a dangling edge."""

    pass


class RelationshipResolutionError(GraphError):
    """
    Raised when a raw resource cannot be linked into the graph.

    Parameters
    ----------
    message : str
        Human-readable error message.
    resource_type : str, optional
        Type of the resource being linked.
    resource_id : str, optional
        Identifier of the resource being linked.
    """

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        details: Dict[str, Any] = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(message, details)


# =============================================================================
# Synchronization Exceptions
# =============================================================================


class AggregateSyncError(AwsyncError):
    """
    Union of every error recorded during one synchronization call.

    The graph returned alongside it is still usable: it holds everything
    that was fetched and linked successfully.

    Parameters
    ----------
    errors : iterable of Exception
        Recorded errors in arrival order.

    Example
    -------
    >>> err = AggregateSyncError([ERR_FETCH_ACCESS_DENIED])
    >>> err.access_denied_count
    1
    """

    def __init__(self, errors: Iterable[BaseException]) -> None:
        self.errors: List[BaseException] = list(errors)
        super().__init__("; ".join(str(e) for e in self.errors))

    def __str__(self) -> str:
        return self.message

    @property
    def access_denied_count(self) -> int:
        """Number of recorded access-denied sentinels."""
        return sum(1 for e in self.errors if e is ERR_FETCH_ACCESS_DENIED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "errors": [
                e.to_dict() if isinstance(e, AwsyncError) else
                {"error_type": e.__class__.__name__, "message": str(e)}
                for e in self.errors
            ],
        }
