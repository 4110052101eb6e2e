"""Tests for the debug front-end launcher."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from raspdebug.errors import LaunchError
from raspdebug.launch.frontend import DebugFrontend

DESCRIPTOR = Path("/tmp/raspdebug-abc.json")


def fake_process(code: int) -> Mock:
    process = Mock()
    process.wait = AsyncMock(return_value=code)
    return process


class TestArgv:
    """Test command line construction."""

    def test_placeholder_replaced(self) -> None:
        frontend = DebugFrontend("code --launch={descriptor} --wait")
        assert frontend.argv(DESCRIPTOR) == ["code", f"--launch={DESCRIPTOR}", "--wait"]

    def test_path_appended(self) -> None:
        frontend = DebugFrontend("my-debugger --attach")
        assert frontend.argv(DESCRIPTOR) == ["my-debugger", "--attach", str(DESCRIPTOR)]

    def test_empty_command(self) -> None:
        with pytest.raises(ValueError):
            DebugFrontend("   ")


class TestLaunch:
    """Test running the front-end process."""

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        frontend = DebugFrontend("my-debugger")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=fake_process(0))) as exec_mock:
            assert await frontend.launch(DESCRIPTOR) == 0
        exec_mock.assert_awaited_once_with("my-debugger", str(DESCRIPTOR))

    @pytest.mark.asyncio
    async def test_nonzero_exit(self) -> None:
        frontend = DebugFrontend("my-debugger")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=fake_process(3))):
            with pytest.raises(LaunchError, match="code 3"):
                await frontend.launch(DESCRIPTOR)

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        frontend = DebugFrontend("missing-debugger")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(side_effect=FileNotFoundError())):
            with pytest.raises(LaunchError, match="not found"):
                await frontend.launch(DESCRIPTOR)
