import html
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List
from urllib.parse import quote, unquote

from .errors import AnchorNotFound
from .models import FragmentKind, RenderedFragment

logger = logging.getLogger(__name__)

ANCHOR_PREFIX = "ANCHOR:"
ANCHOR_PATTERN = re.compile(r'ANCHOR:([^\s<>"]+)')

# Zero-height block with 1px white text: invisible, takes no space, but its
# glyphs stay in the page's text layer and it keeps with the title after it.
ANCHOR_STYLE = (
    "display:block;height:0;overflow:visible;margin:0;padding:0;"
    "font-size:1px;line-height:1px;color:#ffffff;white-space:nowrap;"
    "break-after:avoid;page-break-after:avoid;"
)


def anchor_token(chapter_id: str) -> str:
    # Ids are percent-encoded so whitespace can never split the token.
    return ANCHOR_PREFIX + quote(chapter_id, safe="")


def embed_anchor(chapter_id: str) -> str:
    """Invisible marker placed right before a chapter's title markup."""
    token = html.escape(anchor_token(chapter_id))
    return f'<div class="bb-anchor" aria-hidden="true" style="{ANCHOR_STYLE}">{token}</div>'


def find_tokens(text: str) -> List[str]:
    # Chapter ids of every anchor token in a page's text, in reading order.
    return [unquote(m.group(1)) for m in ANCHOR_PATTERN.finditer(text or "")]


@dataclass
class AnchorResolution:
    anchor_map: Dict[str, int]
    missing: List[AnchorNotFound] = field(default_factory=list)


def resolve_anchors(engine, fragment: RenderedFragment, chapter_ids: Iterable[str]) -> AnchorResolution:
    """Map chapter id -> zero-based page index within the content fragment.

    Only the first sighting of a chapter counts; tokens for unknown ids are
    ignored. Chapters that never show up are reported as AnchorNotFound
    diagnostics instead of failing.
    """
    if fragment.kind != FragmentKind.CONTENT:
        raise ValueError(f"Anchors are resolved on the content fragment, got {fragment.kind.value}")

    expected = list(dict.fromkeys(chapter_ids))
    wanted = set(expected)
    anchor_map: Dict[str, int] = {}

    if wanted and fragment.page_count:
        for page_index, text in enumerate(engine.page_texts(fragment.data)):
            if page_index >= fragment.page_count:
                break
            for chapter_id in find_tokens(text):
                if chapter_id in wanted and chapter_id not in anchor_map:
                    anchor_map[chapter_id] = page_index
            if len(anchor_map) == len(wanted):
                break

    missing = []
    for chapter_id in expected:
        if chapter_id in anchor_map:
            continue
        logger.warning("Anchor for chapter %s not found in rendered content, using page 0", chapter_id)
        missing.append(AnchorNotFound(
            "Chapter anchor not found in rendered content",
            fragment=FragmentKind.CONTENT.value,
            chapter_id=chapter_id,
        ))

    return AnchorResolution(anchor_map=anchor_map, missing=missing)
