import io
from contextlib import ExitStack
from typing import List, Optional

import pikepdf

from .errors import MissingRequiredFragment, RenderEngineFailure
from .models import AssembledDocument, FragmentKind, RenderedFragment


def _pages_of(fragment: Optional[RenderedFragment]) -> int:
    if fragment is None or not fragment.data:
        return 0
    return fragment.page_count


def assemble(
    cover: Optional[RenderedFragment],
    content: Optional[RenderedFragment],
    front: Optional[RenderedFragment] = None,
    toc: Optional[RenderedFragment] = None,
) -> AssembledDocument:
    """Concatenate cover, front matter, TOC and content into one PDF.

    Cover and content are required; a missing or empty front/TOC adds no
    pages. Page order inside each fragment is kept.
    """
    if cover is None:
        raise MissingRequiredFragment("Cover fragment is required", fragment=FragmentKind.COVER.value)
    if content is None:
        raise MissingRequiredFragment("Content fragment is required", fragment=FragmentKind.CONTENT.value)

    ordered: List[RenderedFragment] = [f for f in (cover, front, toc, content) if _pages_of(f)]

    with ExitStack() as stack:
        output_pdf = pikepdf.Pdf.new()

        # Sources stay open until the merged document is saved.
        for fragment in ordered:
            try:
                source = stack.enter_context(pikepdf.open(io.BytesIO(fragment.data)))
            except pikepdf.PdfError as e:
                raise RenderEngineFailure(
                    f"Fragment is not a readable PDF: {e}", fragment=fragment.kind.value
                ) from e

            if len(source.pages) != fragment.page_count:
                raise RenderEngineFailure(
                    f"Fragment reports {fragment.page_count} page(s) but contains {len(source.pages)}",
                    fragment=fragment.kind.value,
                )
            output_pdf.pages.extend(source.pages)

        buffer = io.BytesIO()
        output_pdf.save(buffer)
        total_pages = len(output_pdf.pages)

    return AssembledDocument(
        data=buffer.getvalue(),
        cover_pages=_pages_of(cover),
        front_pages=_pages_of(front),
        toc_pages=_pages_of(toc),
        total_pages=total_pages,
    )
