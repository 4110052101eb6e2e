"""Launch descriptor and debug front-end."""

from raspdebug.launch.descriptor import (
    LaunchConfiguration,
    LaunchDescriptor,
    build_launch_descriptor,
    transient_descriptor,
    write_descriptor,
)
from raspdebug.launch.frontend import DebugFrontend

__all__ = [
    "LaunchConfiguration",
    "LaunchDescriptor",
    "build_launch_descriptor",
    "transient_descriptor",
    "write_descriptor",
    "DebugFrontend",
]
