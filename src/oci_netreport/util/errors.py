from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    OK = 0
    RUNTIME_ERROR = 1
    USAGE_ERROR = 2
    TOOL_MISSING = 3
    INVALID_OCID = 4
    INSTANCE_FETCH_FAILED = 5
    VNIC_LIST_FAILED = 6
    NO_VNICS = 7
    AUTH_ERROR = 8


class NetReportError(Exception):
    """Base error for the network report pipeline."""


class ConfigError(NetReportError):
    """Raised for configuration or argument issues."""


class ToolMissingError(NetReportError):
    """Raised when the OCI Python SDK cannot be imported."""


class AuthResolutionError(NetReportError):
    """Raised when authentication cannot be resolved."""


class InvalidOcidError(NetReportError):
    """Raised when an identifier does not have the expected OCID shape."""


class InstanceFetchError(NetReportError):
    """Raised when the root instance record cannot be fetched."""


class VnicListError(NetReportError):
    """Raised when the vNICs attached to the instance cannot be listed."""


class NoVnicsError(NetReportError):
    """Raised when the instance has no attached vNICs."""


class OCIClientError(NetReportError):
    """Raised when OCI SDK operations fail in a non-retriable way."""


class ReportWriteError(NetReportError):
    """Raised when the report file cannot be written."""


_EXIT_CODES = (
    (InvalidOcidError, ExitCode.INVALID_OCID),
    (InstanceFetchError, ExitCode.INSTANCE_FETCH_FAILED),
    (VnicListError, ExitCode.VNIC_LIST_FAILED),
    (NoVnicsError, ExitCode.NO_VNICS),
    (ToolMissingError, ExitCode.TOOL_MISSING),
    (AuthResolutionError, ExitCode.AUTH_ERROR),
    (ConfigError, ExitCode.USAGE_ERROR),
    (ValueError, ExitCode.USAGE_ERROR),
)


def as_exit_code(exc: BaseException) -> int:
    for exc_type, code in _EXIT_CODES:
        if isinstance(exc, exc_type):
            return int(code)
    return int(ExitCode.RUNTIME_ERROR)


def _oci_error_types() -> tuple[type[BaseException], ...]:
    try:
        from oci.exceptions import RequestException, ServiceError  # type: ignore
    except Exception:
        return ()
    return (ServiceError, RequestException)


def is_oci_error(exc: BaseException) -> bool:
    """
    Return True if the exception looks like an OCI SDK error.
    """
    oci_types = _oci_error_types()
    if oci_types and isinstance(exc, oci_types):
        return True
    return exc.__class__.__module__.startswith("oci.")


def is_not_found(exc: BaseException) -> bool:
    """
    Return True for SDK service errors carrying HTTP 404.
    """
    return is_oci_error(exc) and getattr(exc, "status", None) == 404


def map_oci_error(exc: BaseException, context: str) -> OCIClientError | None:
    """
    Wrap OCI SDK errors with OCIClientError for consistent diagnostics.
    """
    if not is_oci_error(exc):
        return None
    return OCIClientError(f"{context}: {exc}")
