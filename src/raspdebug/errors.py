"""Exception types raised by raspdebug."""

from typing import Optional


class RaspDebugError(Exception):
    """Base class for all raspdebug failures."""


class CatalogError(RaspDebugError):
    """A bundled catalog resource is missing or malformed."""


class PreconditionError(RaspDebugError):
    """The launch cannot start: bad project, missing connection, etc."""


class BuildError(RaspDebugError):
    """The local build or publish step failed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ToolchainError(RaspDebugError):
    """The local dotnet toolchain could not be invoked or failed."""


class ResolutionError(RaspDebugError):
    """No installed runtime satisfies the project's requirement."""


class RemoteConnectionError(RaspDebugError):
    """Connecting to the target failed, or the channel is closed."""


class ProvisioningError(RaspDebugError):
    """A provisioning sub-step failed on the target.

    Attributes:
        step: Name of the sub-step that failed (download, extract, ...)
        output: Captured remote command output, if any
    """

    def __init__(self, step: str, message: str, output: Optional[str] = None) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.output = output


class LaunchError(RaspDebugError):
    """The debug front-end could not be launched."""


class ProgressStateError(AssertionError):
    """The progress stack and its indicator are out of sync."""
