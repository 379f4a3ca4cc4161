"""Base render engine class"""

import io
from abc import ABC, abstractmethod
from typing import Iterator, Optional

import fitz  # PyMuPDF
import pdfplumber
import pikepdf

from ..errors import ConfigError, RenderEngineFailure
from ..models import RenderOutput

TEXT_BACKENDS = ('pdfplumber', 'pymupdf')


class RenderEngine(ABC):
    """Abstract base class for render engines.

    An engine turns one HTML document plus CSS into PDF bytes and can read
    back the text of any page it produced. Rendering must be deterministic
    for identical input.
    """

    name = "base"

    def __init__(self, text_backend: str = "pdfplumber", base_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        if text_backend not in TEXT_BACKENDS:
            raise ConfigError(f"Unsupported text backend: {text_backend}")
        self.text_backend = text_backend
        self.base_url = base_url
        self.timeout = timeout

    @abstractmethod
    def render(self, html: str, css: str) -> RenderOutput:
        """Render an HTML document to PDF.

        Args:
            html: Complete HTML document
            css: Stylesheet applied on top of the document

        Returns:
            RenderOutput with the PDF bytes and its page count
        """
        pass

    def abort(self):
        """Stop in-flight work, if the engine is able to."""
        pass

    def extract_page_text(self, data: bytes, page_index: int) -> str:
        """All text of one page, invisible runs included."""
        for index, text in enumerate(self.page_texts(data)):
            if index == page_index:
                return text
        raise IndexError(f"Page {page_index} out of range")

    def page_texts(self, data: bytes) -> Iterator[str]:
        """Text of every page in order, opening the document once."""
        if not data:
            return
        try:
            if self.text_backend == 'pymupdf':
                yield from self._page_texts_pymupdf(data)
            else:
                yield from self._page_texts_pdfplumber(data)
        except Exception as e:
            raise RenderEngineFailure(f"Could not read page text: {e}") from e

    def _page_texts_pdfplumber(self, data: bytes) -> Iterator[str]:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                yield page.extract_text() or ""

    def _page_texts_pymupdf(self, data: bytes) -> Iterator[str]:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            for page in doc:
                yield page.get_text() or ""
        finally:
            doc.close()

    @staticmethod
    def count_pages(data: bytes) -> int:
        with pikepdf.open(io.BytesIO(data)) as pdf:
            return len(pdf.pages)
