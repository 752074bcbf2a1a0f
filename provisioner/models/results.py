"""
Result values returned by connection tests and migration runs.

These are never persisted; ``to_dict`` produces the JSON shape handed back
to the setup wizard.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Connection failure categories."""
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    PERMISSIONS = "permissions"
    FILESYSTEM = "filesystem"
    UNKNOWN = "unknown"


class ConnectionTestResult(BaseModel):
    """Outcome of a live connection probe."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    error: Optional[str] = None
    error_type: Optional[ErrorType] = Field(default=None, alias="errorType")
    suggestions: Optional[List[str]] = None

    @classmethod
    def ok(cls) -> "ConnectionTestResult":
        return cls(success=True)

    @classmethod
    def failure(
        cls,
        error: str,
        error_type: ErrorType,
        suggestions: List[str],
    ) -> "ConnectionTestResult":
        return cls(
            success=False,
            error=error,
            error_type=error_type,
            suggestions=list(suggestions),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MigrationResult(BaseModel):
    """Outcome of a migration run, with its progress transcript."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    tables_created: Optional[List[str]] = Field(default=None, alias="tablesCreated")
    error: Optional[str] = None
    failed_table: Optional[str] = Field(default=None, alias="failedTable")
    progress: List[str] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
