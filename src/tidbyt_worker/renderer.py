"""Pixlet rendering of the donation applet."""

import asyncio
from pathlib import Path

from effekt_common import get_logger

from .errors import RenderError

logger = get_logger(__name__)


class PixletRenderer:
    """Renders a Starlark applet to WebP by shelling out to ``pixlet``."""

    def __init__(self, pixlet_bin: str, applet_path: Path | str, timeout_ms: int = 30000):
        self.pixlet_bin = pixlet_bin
        self.applet_path = Path(applet_path)
        self.timeout_ms = timeout_ms

    def build_command(self, config: dict[str, str]) -> list[str]:
        cmd = [
            self.pixlet_bin,
            "render",
            "--output",
            "-",
            "--silent",
            "--timeout",
            str(self.timeout_ms),
            str(self.applet_path),
        ]
        cmd.extend(f"{key}={value}" for key, value in config.items())
        return cmd

    async def render(self, config: dict[str, str]) -> bytes:
        """Render the applet with ``config`` as applet parameters.

        Raises:
            RenderError: pixlet is missing, exits non-zero, times out, or
                produces no output
        """
        cmd = self.build_command(config)
        logger.debug("Rendering applet", applet=str(self.applet_path), config=config)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RenderError(f"Failed to start pixlet ({self.pixlet_bin}): {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise RenderError(f"pixlet timed out after {self.timeout_ms}ms")

        err_text = stderr.decode("utf-8", errors="replace").strip()
        if proc.returncode != 0:
            raise RenderError(f"pixlet exited {proc.returncode}: {err_text or '(no stderr)'}")
        if not stdout:
            raise RenderError(f"pixlet returned empty output: {err_text}")

        logger.debug("Rendered applet", bytes=len(stdout))
        return stdout
