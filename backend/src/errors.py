"""Exception taxonomy shared by the connector, launch and version services."""

from __future__ import annotations

from typing import Iterable, Optional


class ViewerHubError(Exception):
    """Base exception for viewer hub operations."""


class ConfigurationError(ViewerHubError):
    """Raised when connector or version configuration is malformed."""


class ValidationError(ViewerHubError):
    """Raised when a request has an invalid shape. Never retried."""


class UnknownConnector(ValidationError):
    """Raised when a search names archive ids that are not configured."""

    def __init__(self, archive_ids: Iterable[str]) -> None:
        self.archive_ids = sorted(set(archive_ids))
        super().__init__(f"Unknown connector id(s): {', '.join(self.archive_ids)}")


class ArchiveError(ViewerHubError):
    """Base class for failures reported by a remote archive."""

    code = "archive_error"
    retryable = False

    def __init__(self, message: str, archive: Optional[str] = None) -> None:
        self.archive = archive
        self.message = message
        prefix = f"[{archive}] " if archive else ""
        super().__init__(f"{prefix}{message}")


class ArchiveUnavailable(ArchiveError):
    """The remote endpoint could not be reached."""

    code = "archive_unavailable"
    retryable = True


class ArchiveServerError(ArchiveError):
    """The remote endpoint answered with a server side failure."""

    code = "archive_server_error"
    retryable = True


class ArchiveClientError(ArchiveError):
    """The remote endpoint rejected the query as malformed."""

    code = "archive_client_error"


class ArchiveNoAccess(ArchiveError):
    """The remote endpoint refused the query for authorization reasons."""

    code = "archive_no_access"


class SearchTimeout(ViewerHubError):
    """Raised when a search request exceeds its deadline."""

    def __init__(self, timeout: float, pending: Iterable[str]) -> None:
        self.timeout = timeout
        self.pending = sorted(pending)
        super().__init__(f"Search timed out after {timeout:g}s waiting for: {', '.join(self.pending)}")


class NoCompatibleVersion(ViewerHubError):
    """Raised when a client version is older than every published minimal version."""

    def __init__(self, client_version: str) -> None:
        self.client_version = client_version
        super().__init__(f"No compatible release for client version {client_version}: upgrade required")


class LaunchConfigNotFound(ViewerHubError):
    """Raised when a launch configuration name does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Launch config '{name}' not found")
