"""Where things live on the target.

Kept free of package imports so both the session and the launch
descriptor can depend on it.
"""

REMOTE_DOTNET_FOLDER = "/lib/dotnet"
REMOTE_DEBUGGER_FOLDER = f"{REMOTE_DOTNET_FOLDER}/vsdbg"
REMOTE_DEBUGGER_PATH = f"{REMOTE_DEBUGGER_FOLDER}/vsdbg"
INSTALLED_MARKER = ".installed"

DEBUGGER_INSTALLER_URL = "https://aka.ms/getvsdbgsh"


def remote_program_root(user: str) -> str:
    """Folder holding all uploaded programs for a user."""
    return f"/home/{user}/vsdbg"


def remote_program_folder(user: str, program_name: str) -> str:
    """Upload folder for one program; distinct per user and program."""
    return f"{remote_program_root(user)}/{program_name}"
