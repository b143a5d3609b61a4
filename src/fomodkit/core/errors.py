"""Error handling with friendly messages."""

from __future__ import annotations


class FomodKitError(Exception):
    """Base exception for all fomodkit errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(FomodKitError):
    """Configuration error."""

    pass


class FormatError(FomodKitError):
    """A persisted document (metadata, ledger, install state) is malformed."""

    pass


class IncompatibleVersionError(FomodKitError):
    """A package or ledger needs a tool or schema version we cannot honour."""

    pass


class LedgerMigrationError(IncompatibleVersionError):
    """Install ledger migration hit an entry it cannot reconcile."""

    pass


class ResourceNotFoundError(FomodKitError):
    """A source path or archive entry does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Not found: {path}")


class ArchiveError(FomodKitError):
    """Archive could not be opened or is of an unsupported format."""

    pass


class TransactionError(FomodKitError):
    """A package mutation failed; the archive is left as last committed."""

    pass


class BuilderError(FomodKitError):
    """Invalid copy instruction or tree operation."""

    pass


class ActivationError(FomodKitError):
    """Package activation or deactivation failed."""

    pass
