"""Exit codes shared by CLI commands."""

INVALID_RECORDS_EXIT_CODE = 1
VALIDATION_EXIT_CODE = 10
SOURCE_EXIT_CODE = 20
SYSTEM_EXIT_CODE = 40

__all__ = ["INVALID_RECORDS_EXIT_CODE", "SOURCE_EXIT_CODE", "SYSTEM_EXIT_CODE", "VALIDATION_EXIT_CODE"]
