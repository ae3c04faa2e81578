"""Tests for PixletRenderer against a stand-in pixlet executable."""

import os
import stat
import sys
from pathlib import Path

import pytest

from tidbyt_worker.errors import RenderError
from tidbyt_worker.renderer import PixletRenderer

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


def write_fake_pixlet(tmp_path: Path, body: str) -> str:
    """Write an executable shell script that stands in for pixlet."""
    script = tmp_path / "pixlet"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


class TestBuildCommand:

    def test_command_line(self):
        renderer = PixletRenderer("pixlet", "/apps/donation_alert.star", timeout_ms=5000)

        cmd = renderer.build_command({"count": "3", "sum": "150"})

        assert cmd == [
            "pixlet", "render", "--output", "-", "--silent", "--timeout", "5000",
            "/apps/donation_alert.star", "count=3", "sum=150",
        ]


class TestRender:

    @pytest.mark.asyncio
    async def test_returns_stdout_bytes(self, tmp_path):
        # Echo the arguments back so the test can see what pixlet received
        pixlet = write_fake_pixlet(tmp_path, 'printf "%s " "$@"')
        renderer = PixletRenderer(pixlet, tmp_path / "app.star", timeout_ms=5000)

        image = await renderer.render({"count": "2", "country": "NO"})

        args = image.decode().split()
        assert args[:4] == ["render", "--output", "-", "--silent"]
        assert "count=2" in args
        assert "country=NO" in args

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_with_stderr(self, tmp_path):
        pixlet = write_fake_pixlet(tmp_path, 'echo "applet error" >&2\nexit 3')
        renderer = PixletRenderer(pixlet, tmp_path / "app.star")

        with pytest.raises(RenderError, match="exited 3: applet error"):
            await renderer.render({})

    @pytest.mark.asyncio
    async def test_empty_output_raises(self, tmp_path):
        pixlet = write_fake_pixlet(tmp_path, "exit 0")
        renderer = PixletRenderer(pixlet, tmp_path / "app.star")

        with pytest.raises(RenderError, match="empty output"):
            await renderer.render({})

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, tmp_path):
        renderer = PixletRenderer(str(tmp_path / "no-such-pixlet"), tmp_path / "app.star")

        with pytest.raises(RenderError, match="Failed to start pixlet"):
            await renderer.render({})

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        pixlet = write_fake_pixlet(tmp_path, "exec sleep 5")
        renderer = PixletRenderer(pixlet, tmp_path / "app.star", timeout_ms=200)

        with pytest.raises(RenderError, match="timed out"):
            await renderer.render({})


def test_bundled_applet_exists():
    from tidbyt_worker.config import DEFAULT_APPLET_PATH

    assert DEFAULT_APPLET_PATH.is_file()
    assert os.path.getsize(DEFAULT_APPLET_PATH) > 0
