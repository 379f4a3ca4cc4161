import io
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import pikepdf
from bs4 import BeautifulSoup
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from .models import ChapterRange
from .ranges import chapter_title_for_page

ELLIPSIS = "…"


@dataclass
class StampStyle:
    font_name: str = "Helvetica"
    font_size: float = 9
    font_path: Optional[str] = None  # TrueType file, needed for non-Latin titles
    margin_x: float = 36  # points from the left/right edge
    header_y: float = 28  # points from the top edge to the header baseline
    footer_y: float = 24  # points from the bottom edge to the footer baseline
    max_chars: int = 60
    header_left: str = "{{BOOK_TITLE}}"
    header_right: str = "{{CHAPTER_TITLE}}"
    footer_center: str = "{{PAGE}}"

    def resolved_font(self) -> str:
        if not self.font_path:
            return self.font_name
        name = Path(self.font_path).stem
        if name not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont(name, self.font_path))
        return name


def truncate(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + ELLIPSIS


def template_text(markup: str) -> str:
    # Header/footer templates are markup; the stamp only needs their text.
    if not markup or not markup.strip():
        return ""
    return " ".join(BeautifulSoup(markup, 'html.parser').get_text(" ").split())


def fill(text: str, book_title: str, chapter_title: str, page_number: int, year: str = "") -> str:
    return (
        text.replace("{{BOOK_TITLE}}", book_title)
        .replace("{{CHAPTER_TITLE}}", chapter_title)
        .replace("{{PAGE}}", str(page_number))
        .replace("{{YEAR}}", year)
    )


def _page_size(page: pikepdf.Page) -> Tuple[float, float]:
    x0, y0, x1, y1 = (float(v) for v in page.mediabox)
    return x1 - x0, y1 - y0


def _overlay_pdf(sizes: List[Tuple[float, float]], texts: List[Tuple[str, str, str]],
                 style: StampStyle) -> bytes:
    # One overlay page per stamped page, sized to match it.
    buffer = io.BytesIO()
    font = style.resolved_font()
    c = canvas.Canvas(buffer)

    for (width, height), (left, right, center) in zip(sizes, texts):
        c.setPageSize((width, height))
        c.setFont(font, style.font_size)
        c.setFillColorRGB(0.25, 0.25, 0.25)
        if left:
            c.drawString(style.margin_x, height - style.header_y, left)
        if right:
            c.drawRightString(width - style.margin_x, height - style.header_y, right)
        if center:
            c.drawCentredString(width / 2, style.footer_y, center)
        c.showPage()

    c.save()
    return buffer.getvalue()


def stamp_pages(
    data: bytes,
    cover_pages: int,
    book_title: str,
    ranges: List[ChapterRange],
    style: Optional[StampStyle] = None,
    year: str = "",
) -> bytes:
    """Return a copy of the document with running headers and footers.

    Cover pages are left alone. Every other page gets the book title
    (top left), the chapter owning the page (top right, empty outside
    any chapter) and a page number counted from the first non-cover page
    (bottom centre).
    """
    style = style or StampStyle()

    with pikepdf.open(io.BytesIO(data)) as pdf:
        targets = list(range(cover_pages, len(pdf.pages)))
        if not targets:
            return data

        sizes = []
        texts = []
        for page_index in targets:
            sizes.append(_page_size(pdf.pages[page_index]))
            chapter_title = chapter_title_for_page(ranges, page_index)
            page_number = page_index - cover_pages + 1
            texts.append(tuple(
                truncate(fill(t, book_title, chapter_title, page_number, year), style.max_chars)
                for t in (style.header_left, style.header_right, style.footer_center)
            ))

        with pikepdf.open(io.BytesIO(_overlay_pdf(sizes, texts, style))) as overlay:
            for overlay_page, page_index in zip(overlay.pages, targets):
                pdf.pages[page_index].add_overlay(overlay_page)

            buffer = io.BytesIO()
            pdf.save(buffer)

    return buffer.getvalue()
