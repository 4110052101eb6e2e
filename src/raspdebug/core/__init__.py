"""Core components: remote session, progress tracking and launch orchestration."""

from raspdebug.core.types import DebuggerSettings, LaunchOutcome, LaunchPhase
from raspdebug.core.progress import ProgressController
from raspdebug.core.project import ProjectProperties
from raspdebug.core.session import RemoteSession, RemoteState, SessionState
from raspdebug.core.launcher import DebugLauncher, LaunchRequest

__all__ = [
    "DebuggerSettings",
    "LaunchOutcome",
    "LaunchPhase",
    "ProgressController",
    "ProjectProperties",
    "RemoteSession",
    "RemoteState",
    "SessionState",
    "DebugLauncher",
    "LaunchRequest",
]
