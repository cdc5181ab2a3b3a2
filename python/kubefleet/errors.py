"""
kubefleet/errors.py

Exception taxonomy shared by the reconciler, the spot provisioning workflow
and the pricing lookup.

Synchronous paths raise one of these, wrapping the underlying cause with
`raise ... from exc`. Nothing here is retried internally; retry policy belongs
to whatever engine invokes the operation.
"""

from __future__ import annotations

from typing import Optional


class FleetError(Exception):
    """Base class for every error raised by kubefleet operations."""


class InvalidCredentials(FleetError):
    """The cloud account credentials cannot be used to build a provider client."""


class ProviderQueryFailed(FleetError):
    """A read against the provider (e.g. instance inventory) failed."""


class ClientConstructionFailed(FleetError):
    """A provider API client could not be constructed."""


class RequestSubmissionFailed(FleetError):
    """The provider rejected (or never received) a spot capacity request."""


class UnsupportedProvider(FleetError):
    """The requested provider has no registered implementation."""


class InvalidConfig(FleetError):
    """Malformed configuration (numeric strings, missing mappings, bad documents)."""


class ClusterNotFound(FleetError, KeyError):
    """The cluster-state store has no record for the requested id."""


class ProviderError(FleetError):
    """Represents a failed remote call inside a provider adapter.

    Adapters raise this for every provider-side failure so that the workflows
    can wrap it with operation context without knowing the provider SDK.

    Attributes:
        code (Optional[str]): Provider error code, if the provider returned one.
        detail (Optional[str]): Provider diagnostic message, if any.
    """

    def __init__(
        self, message: str, code: Optional[str] = None, detail: Optional[str] = None
    ) -> None:
        """
        Initialize a ProviderError.

        Args:
            message (str): Human readable description of the failed call.
            code (Optional[str]): Provider error code (e.g. 'InvalidParameterValue').
            detail (Optional[str]): Provider diagnostic message.
        """
        super().__init__(message)
        self.code = code
        self.detail = detail


__all__ = [
    "FleetError",
    "InvalidCredentials",
    "ProviderQueryFailed",
    "ClientConstructionFailed",
    "RequestSubmissionFailed",
    "UnsupportedProvider",
    "InvalidConfig",
    "ClusterNotFound",
    "ProviderError",
]
