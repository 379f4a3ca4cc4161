"""wkhtmltopdf render engine"""

import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Set

from ..errors import RenderEngineFailure, RenderEngineTimeout
from ..models import RenderOutput
from .base import RenderEngine


class WkhtmltopdfEngine(RenderEngine):
    """Renders through the wkhtmltopdf binary in a subprocess.

    Running processes are tracked so abort() can kill them and release
    the external resource.
    """

    name = "wkhtmltopdf"

    def __init__(self, binary: str = "wkhtmltopdf", **kwargs):
        super().__init__(**kwargs)
        self.binary = binary
        self._lock = threading.Lock()
        self._running: Set[subprocess.Popen] = set()

    def render(self, html: str, css: str) -> RenderOutput:
        with tempfile.TemporaryDirectory(prefix="bookbinder-") as tmp:
            tmp_dir = Path(tmp)
            source = tmp_dir / "document.html"
            output = tmp_dir / "document.pdf"

            # wkhtmltopdf has no separate stylesheet input; inline it.
            styled = html.replace("</head>", f"<style>{css}</style>\n</head>", 1) if css else html
            source.write_text(styled, encoding='utf-8')

            args = [self.binary, '--quiet', '--encoding', 'utf-8',
                    '--enable-local-file-access', str(source), str(output)]
            self._run(args)

            if not output.exists():
                raise RenderEngineFailure("wkhtmltopdf produced no PDF")
            data = output.read_bytes()

        return RenderOutput(data=data, page_count=self.count_pages(data))

    def _run(self, args):
        try:
            process = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except FileNotFoundError as e:
            raise RenderEngineFailure(
                "wkhtmltopdf not found. Install it or use the weasyprint engine."
            ) from e

        with self._lock:
            self._running.add(process)
        try:
            _, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            raise RenderEngineTimeout(f"wkhtmltopdf exceeded {self.timeout}s") from e
        finally:
            with self._lock:
                self._running.discard(process)

        # Exit code 1 is used for warnings such as failed asset loads.
        if process.returncode not in (0, 1):
            message = stderr.decode('utf-8', errors='replace').strip()
            raise RenderEngineFailure(f"wkhtmltopdf exited with {process.returncode}: {message}")

    def abort(self):
        with self._lock:
            running = list(self._running)
        for process in running:
            process.kill()

    @property
    def running_count(self) -> int:
        with self._lock:
            return len(self._running)
