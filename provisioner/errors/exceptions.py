"""
Exception classes for the provisioning core.

Every error carries a short code (XXX-NNNN), a human-readable message and
optional details so callers can render it for an operator.
"""

from typing import Optional, Dict, Any, List


class ProvisionerError(Exception):
    """Base exception for all provisioning errors."""

    def __init__(
        self,
        code: str,
        message: str,
        description: Optional[str] = None,
        http_status: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.description = description or message
        self.http_status = http_status
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API response."""
        return {
            "error_code": self.code,
            "message": self.message,
            "description": self.description,
            "http_status": self.http_status,
            "details": self.details,
        }


class ConfigStoreError(ProvisionerError):
    """Configuration document could not be read or removed."""

    def __init__(
        self,
        message: str = "Configuration store error",
        code: str = "CFG-0001",
        description: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if path:
            error_details["path"] = path

        super().__init__(
            code=code,
            message=message,
            description=description,
            http_status=500,
            details=error_details,
        )


class ConfigCorruptError(ConfigStoreError):
    """Persisted configuration document is malformed."""

    def __init__(
        self,
        message: str = "Configuration file is corrupt",
        description: Optional[str] = None,
        path: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code="CFG-0002",
            description=description,
            path=path,
        )


class ConfigWriteError(ConfigStoreError):
    """Configuration document could not be written."""

    def __init__(
        self,
        message: str = "Failed to save configuration",
        description: Optional[str] = None,
        path: Optional[str] = None,
        hints: Optional[List[str]] = None,
    ):
        super().__init__(
            message=message,
            code="CFG-0003",
            description=description,
            path=path,
            details={"hints": hints or []},
        )


class InvalidDatabaseConfigError(ProvisionerError):
    """Database configuration is incomplete or out of range."""

    def __init__(
        self,
        message: str = "Invalid database configuration",
        problems: Optional[List[str]] = None,
    ):
        problems = problems or []
        description = message
        if problems:
            description = f"{message}: {'; '.join(problems)}"

        super().__init__(
            code="VAL-0001",
            message=message,
            description=description,
            http_status=400,
            details={"problems": problems},
        )


class AdapterError(ProvisionerError):
    """Live database adapter could not be opened."""

    def __init__(
        self,
        message: str = "Failed to create database adapter",
        database_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        error_details = details or {}
        if database_type:
            error_details["database_type"] = database_type

        super().__init__(
            code="DB-0001",
            message=message,
            http_status=503,
            details=error_details,
        )


class SetupIncompleteError(ProvisionerError):
    """Protected functionality was requested before setup finished."""

    def __init__(
        self,
        message: str = "Database not configured. Please complete setup.",
    ):
        super().__init__(
            code="SET-0001",
            message=message,
            http_status=503,
        )


class SetupAlreadyCompleteError(ProvisionerError):
    """Setup wizard was requested after setup finished."""

    def __init__(
        self,
        message: str = "Setup is already complete",
    ):
        super().__init__(
            code="SET-0002",
            message=message,
            http_status=409,
        )
