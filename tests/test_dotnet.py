"""Tests for the local dotnet toolchain wrapper."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from raspdebug.errors import ToolchainError
from raspdebug.tools.dotnet import DotnetToolchain, ProcessResult


def fake_process(code: int, stdout: bytes = b"", stderr: bytes = b"") -> Mock:
    process = Mock()
    process.returncode = code
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


class TestProcessResult:
    """Test captured output helpers."""

    def test_all_text(self) -> None:
        result = ProcessResult(1, "out\n", "err\n")
        assert result.ok is False
        assert result.all_text == "out\nerr"

    def test_all_text_skips_empty(self) -> None:
        assert ProcessResult(0, "", "only err").all_text == "only err"


class TestDotnetToolchain:
    """Test running dotnet."""

    @pytest.mark.asyncio
    async def test_list_sdks(self) -> None:
        process = fake_process(0, b"3.1.402 [/usr/share/dotnet/sdk]\n")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)) as exec_mock:
            listing = await DotnetToolchain("/opt/dotnet/dotnet").list_sdks()

        assert listing.startswith("3.1.402")
        assert exec_mock.call_args.args == ("/opt/dotnet/dotnet", "--list-sdks")

    @pytest.mark.asyncio
    async def test_list_sdks_failure(self) -> None:
        process = fake_process(1, b"", b"broken install")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)):
            with pytest.raises(ToolchainError, match="broken install"):
                await DotnetToolchain().list_sdks()

    @pytest.mark.asyncio
    async def test_missing_executable(self) -> None:
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(side_effect=FileNotFoundError())):
            with pytest.raises(ToolchainError, match="not found"):
                await DotnetToolchain("nope").list_sdks()

    @pytest.mark.asyncio
    async def test_publish_arguments(self, tmp_path: Path) -> None:
        project = tmp_path / "Blinky" / "Blinky.csproj"
        out = tmp_path / "publish"
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=fake_process(0))) as exec_mock:
            result = await DotnetToolchain().publish(project, "Debug", "linux-arm", out)

        assert result.ok is True
        assert exec_mock.call_args.args == (
            "dotnet", "publish",
            "--configuration", "Debug",
            "--runtime", "linux-arm",
            "--no-self-contained",
            "--output", str(out),
            str(project),
        )

    @pytest.mark.asyncio
    async def test_publish_failure_is_returned(self, tmp_path: Path) -> None:
        process = fake_process(1, b"error CS1002: ; expected")
        with patch("asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)):
            result = await DotnetToolchain().publish(tmp_path / "A.csproj", "Debug", "linux-arm", tmp_path)

        assert result.ok is False
        assert "CS1002" in result.all_text
