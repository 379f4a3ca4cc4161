"""WeasyPrint render engine"""

from weasyprint import CSS, HTML

from ..errors import RenderEngineFailure
from ..models import RenderOutput
from .base import RenderEngine


class WeasyPrintEngine(RenderEngine):
    """Renders HTML+CSS in-process with WeasyPrint.

    WeasyPrint cannot be interrupted mid-layout; the render session's
    timeout stops waiting for it and discards whatever it produces.
    """

    name = "weasyprint"

    def render(self, html: str, css: str) -> RenderOutput:
        try:
            stylesheets = [CSS(string=css)] if css else []
            document = HTML(string=html, base_url=self.base_url).render(stylesheets=stylesheets)
            data = document.write_pdf()
        except Exception as e:
            raise RenderEngineFailure(f"WeasyPrint failed: {e}") from e

        if not data:
            raise RenderEngineFailure("WeasyPrint produced no PDF")

        return RenderOutput(data=data, page_count=len(document.pages))
