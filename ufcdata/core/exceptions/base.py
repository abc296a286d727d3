"""ufcdata core exception classes."""

from typing import Any


class UfcDataError(Exception):
    """Base exception for ufcdata."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """Initialise the exception.

        Args:
            message: Human readable error message
            error_code: Stable machine readable code
            details: Extra context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(UfcDataError):
    """Invalid rule, strategy or settings payload."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class TransformationError(UfcDataError):
    """A transformation pipeline step could not produce records."""

    def __init__(self, message: str, step_id: str, details: dict[str, Any] | None = None):
        super().__init__(message, "TRANSFORMATION_ERROR", {"step_id": step_id, **(details or {})})
        self.step_id = step_id


class IngestionError(UfcDataError):
    """A pipeline batch failed as a whole."""

    def __init__(
        self,
        message: str,
        source_id: str,
        error_code: str = "INGESTION_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details["source_id"] = source_id
        super().__init__(message, error_code, super_details)
        self.source_id = source_id


class ConnectorError(UfcDataError):
    """Source connector related errors."""

    def __init__(
        self,
        message: str,
        source_id: str,
        error_code: str = "CONNECTOR_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.source_id = source_id


class ConnectorRegistrationError(ConnectorError):
    """A connector is already registered for the source id."""

    def __init__(self, source_id: str):
        super().__init__(
            f"Connector for source '{source_id}' is already registered",
            source_id,
            "CONNECTOR_ALREADY_REGISTERED",
        )


class ConnectorNotRegisteredError(ConnectorError):
    """No connector is registered for the source id."""

    def __init__(self, source_id: str):
        super().__init__(
            f"No connector registered for source '{source_id}'",
            source_id,
            "CONNECTOR_NOT_REGISTERED",
        )


class CircuitOpenError(ConnectorError):
    """The connector's circuit breaker rejected the call."""

    def __init__(self, source_id: str, remaining_time: float):
        super().__init__(
            f"Circuit breaker for '{source_id}' is open",
            source_id,
            "CIRCUIT_BREAKER_OPEN",
            {"remaining_time": remaining_time},
        )
        self.remaining_time = remaining_time


class ValidationConfigNotFoundError(UfcDataError):
    """No real-time validation config exists for a source/entity pair."""

    def __init__(self, source_id: str, entity_type: str):
        super().__init__(
            f"No validation config found for {source_id}:{entity_type}",
            "VALIDATION_CONFIG_NOT_FOUND",
            {"source_id": source_id, "entity_type": entity_type},
        )
        self.source_id = source_id
        self.entity_type = entity_type
