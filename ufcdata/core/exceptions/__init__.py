"""Exception handling module."""

from ufcdata.core.exceptions.base import (
    CircuitOpenError,
    ConfigurationError,
    ConnectorError,
    ConnectorNotRegisteredError,
    ConnectorRegistrationError,
    IngestionError,
    TransformationError,
    UfcDataError,
    ValidationConfigNotFoundError,
)

__all__ = [
    "UfcDataError",
    "ConfigurationError",
    "IngestionError",
    "TransformationError",
    "ConnectorError",
    "ConnectorRegistrationError",
    "ConnectorNotRegisteredError",
    "CircuitOpenError",
    "ValidationConfigNotFoundError",
]
