"""Remote .NET debugging on Raspberry Pi targets."""

__version__ = "0.1.0"
