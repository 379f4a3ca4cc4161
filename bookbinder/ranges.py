from bisect import bisect_right
from typing import Dict, Iterable, List

from .models import ChapterRange, ContentNode


def compute_chapter_ranges(
    chapters: Iterable[ContentNode],
    anchor_map: Dict[str, int],
    content_offset: int,
    total_pages: int,
) -> List[ChapterRange]:
    """Final page ranges owned by each chapter.

    A chapter starts at content_offset + its anchor page (0 when its anchor
    was lost) and runs until the page before the next chapter's start; the
    last one runs to the end of the document. When two chapters start on
    the same page the later one owns it and the earlier one is dropped.
    """
    starts = [
        (content_offset + anchor_map.get(chapter.id, 0), position, chapter)
        for position, chapter in enumerate(chapters)
    ]
    # Ties keep reading order.
    starts.sort(key=lambda item: (item[0], item[1]))

    ranges = []
    for index, (first_page, _, chapter) in enumerate(starts):
        if first_page >= total_pages:
            continue
        if index + 1 < len(starts):
            last_page = min(starts[index + 1][0] - 1, total_pages - 1)
        else:
            last_page = total_pages - 1
        if last_page < first_page:
            continue
        ranges.append(ChapterRange(
            chapter_id=chapter.id,
            title=chapter.title,
            first_page=first_page,
            last_page=last_page,
        ))

    return ranges


def chapter_title_for_page(ranges: List[ChapterRange], page_index: int) -> str:
    # ranges are sorted and disjoint, so bisect on their first pages.
    firsts = [r.first_page for r in ranges]
    position = bisect_right(firsts, page_index) - 1
    if position >= 0 and ranges[position].contains(page_index):
        return ranges[position].title
    return ""
