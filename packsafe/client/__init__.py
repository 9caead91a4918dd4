"""Workspace client — manifest discovery, scanning and package management."""


class ClientError(Exception):
    """Base client exception."""


class ConfigurationError(ClientError):
    """Missing workspace, manifest, API key or server URL."""


class BackendError(ClientError):
    """The PackSafe backend rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)

    @property
    def rate_limited(self) -> bool:
        return self.status_code == 429 or "rate limit" in str(self).lower()


class PackageManagerError(ClientError):
    """An npm / yarn / pnpm command exited with a non-zero status."""


class ScanCancelled(ClientError):
    """The user cancelled a multi-manifest scan between files."""
