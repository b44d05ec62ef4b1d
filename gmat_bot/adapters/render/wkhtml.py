"""wkhtmltoimage renderer — implements Renderer."""

import asyncio
import sys
import tempfile
from pathlib import Path
from typing import Optional

from gmat_bot.config import CONFIG
from gmat_bot.domain.errors import RenderError

IMAGE_WIDTH = 1200
IMAGE_QUALITY = 100


def _log(msg: str):
    print(msg, file=sys.stderr)


async def _run_subprocess(cmd_args):
    """Run a subprocess command and return process/stdout/stderr."""
    proc = await asyncio.create_subprocess_exec(
        *cmd_args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        try:
            proc.kill()
        except ProcessLookupError:
            pass  # already exited
        await proc.wait()
        raise
    return proc, stdout, stderr


class WkhtmlRenderer:
    """Renders an HTML document to PNG bytes with the wkhtmltoimage CLI."""

    def __init__(self, binary: Optional[str] = None, timeout: Optional[float] = None):
        self._binary = binary or CONFIG["wkhtmltoimage_path"]
        self._timeout = timeout if timeout is not None else CONFIG["render_timeout_seconds"]

    def command(self, html_path: str, output_path: str) -> list:
        return [
            self._binary,
            "--quiet",
            "--width",
            str(IMAGE_WIDTH),
            "--disable-smart-width",
            "--quality",
            str(IMAGE_QUALITY),
            "--javascript-delay",
            "1000",
            html_path,
            output_path,
        ]

    async def render(self, html: str) -> bytes:
        with tempfile.TemporaryDirectory(prefix="gmat-render-") as tmp:
            html_path = Path(tmp) / "question.html"
            output_path = Path(tmp) / "question.png"
            html_path.write_text(html, encoding="utf-8")

            try:
                proc, _, stderr = await asyncio.wait_for(
                    _run_subprocess(self.command(str(html_path), str(output_path))),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as e:
                raise RenderError(f"{self._binary} timed out after {self._timeout:.0f}s") from e
            except FileNotFoundError as e:
                raise RenderError(
                    f"{self._binary} is not installed or not in PATH. "
                    "See https://wkhtmltopdf.org/downloads.html"
                ) from e
            except OSError as e:
                raise RenderError(f"Could not start {self._binary}: {e}") from e

            if proc.returncode != 0:
                raise RenderError(
                    f"{self._binary} exited with {proc.returncode}: "
                    f"{stderr.decode('utf-8', errors='replace').strip()[:300]}"
                )
            if not output_path.exists() or output_path.stat().st_size == 0:
                raise RenderError(f"{self._binary} produced no image")

            image = output_path.read_bytes()

        _log(f"[render] {len(image)} bytes")
        return image
