"""Table of contents entries and page-number resolution.

A TOC entry prints ``leading pages + TOC pages + content page index``,
but the TOC's page count is only known after rendering it with those
numbers. resolve_toc() settles this with a bounded fixed-point loop:
guess one TOC page, render, and retry with the measured count until the
guess and the measurement agree.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .errors import TocConvergenceExceeded
from .markup import chapter_numbers, node_label
from .models import ContentNode, FragmentKind, NodeKind, RenderedFragment, TocEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5

RenderToc = Callable[[List[TocEntry], int], RenderedFragment]


def build_toc_entries(sequence: Sequence[ContentNode], toc_depth: int,
                      number_chapters: bool = False) -> List[TocEntry]:
    # Nodes deeper than the configured depth never reach the TOC.
    numbers = chapter_numbers(sequence) if number_chapters else {}
    return [
        TocEntry(
            label=node_label(node, numbers.get(node.id)),
            level=node.depth,
            node_id=node.id,
            kind=node.kind,
        )
        for node in sequence
        if 1 <= node.depth <= toc_depth
    ]


def _next_chapter(sequence: Sequence[ContentNode], start: int) -> Optional[str]:
    # Forward scan for the first chapter; another part first means none.
    for node in sequence[start + 1:]:
        if node.kind == NodeKind.CHAPTER:
            return node.id
        if node.kind == NodeKind.PART:
            return None
    return None


def page_targets(sequence: Sequence[ContentNode]) -> Dict[str, Optional[str]]:
    """Which chapter's page each node shows in the TOC.

    Chapters show their own page. Parts show the next chapter after them,
    or nothing when another part comes first. Headings show their
    enclosing chapter, falling back to the part rule when they have none.
    """
    targets: Dict[str, Optional[str]] = {}
    path: List[ContentNode] = []  # ancestors of the current node, by depth

    for index, node in enumerate(sequence):
        while path and path[-1].depth >= node.depth:
            path.pop()

        if node.kind == NodeKind.CHAPTER:
            targets[node.id] = node.id
        elif node.kind == NodeKind.PART:
            targets[node.id] = _next_chapter(sequence, index)
        else:
            owner = next((a.id for a in reversed(path) if a.kind == NodeKind.CHAPTER), None)
            targets[node.id] = owner if owner is not None else _next_chapter(sequence, index)

        path.append(node)

    return targets


def assign_pages(entries: List[TocEntry], targets: Dict[str, Optional[str]],
                 anchor_map: Dict[str, int], content_offset: int):
    # content_offset: final page index where the content fragment starts.
    for entry in entries:
        chapter_id = targets.get(entry.node_id)
        if chapter_id is None:
            entry.page = None
        else:
            entry.page = content_offset + anchor_map.get(chapter_id, 0) + 1


def has_converged(guessed: int, measured: int) -> bool:
    return measured == guessed


@dataclass
class TocResolution:
    entries: List[TocEntry]
    fragment: Optional[RenderedFragment]
    toc_pages: int
    iterations: int
    converged: bool
    diagnostics: List[TocConvergenceExceeded] = field(default_factory=list)


def resolve_toc(
    entries: List[TocEntry],
    targets: Dict[str, Optional[str]],
    anchor_map: Dict[str, int],
    leading_pages: int,
    render_toc: RenderToc,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> TocResolution:
    """Render the TOC until its page count matches the count it assumed.

    Args:
        entries: TOC entries, already filtered by depth; their pages are
            overwritten on every pass
        targets: node id -> chapter id whose page it shows (page_targets)
        anchor_map: chapter id -> content page index
        leading_pages: cover + front matter pages before the TOC
        render_toc: renders the entries, called with (entries, attempt)
        max_attempts: cap on TOC renders

    Returns:
        TocResolution. When the cap is hit the last rendered TOC is kept
        and a TocConvergenceExceeded diagnostic is attached.
    """
    assign_pages(entries, targets, anchor_map, leading_pages + 1)
    if not any(entry.page is not None for entry in entries):
        return TocResolution(entries=entries, fragment=None, toc_pages=0, iterations=0, converged=True)

    guessed = 1
    fragment: Optional[RenderedFragment] = None

    for attempt in range(1, max_attempts + 1):
        assign_pages(entries, targets, anchor_map, leading_pages + guessed)
        fragment = render_toc(entries, attempt)
        if fragment.kind != FragmentKind.TOC:
            raise ValueError(f"TOC renderer returned a {fragment.kind.value} fragment")

        measured = fragment.page_count
        logger.debug("TOC pass %d: guessed %d page(s), measured %d", attempt, guessed, measured)

        if has_converged(guessed, measured):
            return TocResolution(
                entries=entries, fragment=fragment, toc_pages=measured,
                iterations=attempt, converged=True,
            )
        guessed = measured

    logger.warning("TOC page count did not settle after %d passes, keeping the last one", max_attempts)
    diagnostic = TocConvergenceExceeded(
        f"TOC did not converge within {max_attempts} attempts",
        fragment=FragmentKind.TOC.value,
        iteration=max_attempts,
    )
    return TocResolution(
        entries=entries, fragment=fragment, toc_pages=fragment.page_count,
        iterations=max_attempts, converged=False, diagnostics=[diagnostic],
    )
