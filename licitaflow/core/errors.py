"""Custom exceptions used across licitaflow."""


class LicitaFlowError(Exception):
    """Base error for the application."""


class ConfigError(LicitaFlowError):
    """Configuration related error."""


class WorkbookReadError(LicitaFlowError):
    """Raised when a workbook cannot be opened or has no usable sheet."""


class HeaderValidationError(LicitaFlowError):
    """Raised when a workbook lacks the columns required for submission."""

    def __init__(self, message: str, *, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing = list(missing or [])
