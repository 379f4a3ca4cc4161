"""
Tests for chapter page ranges (bookbinder/ranges.py)

Run: python -m pytest tests/test_ranges.py -q
"""

from bookbinder.models import ContentNode, NodeKind
from bookbinder.ranges import chapter_title_for_page, compute_chapter_ranges


def chapter(node_id, title=None):
    return ContentNode(id=node_id, kind=NodeKind.CHAPTER, title=title or node_id.title())


class TestComputeRanges:
    def test_end_to_end_layout(self):
        ranges = compute_chapter_ranges(
            [chapter('intro'), chapter('methods')], {'intro': 0, 'methods': 1},
            content_offset=2, total_pages=5,
        )
        assert [(r.chapter_id, r.first_page, r.last_page) for r in ranges] == [
            ('intro', 2, 2), ('methods', 3, 4),
        ]

    def test_ranges_cover_content_without_gaps(self):
        chapters = [chapter('a'), chapter('b'), chapter('c')]
        ranges = compute_chapter_ranges(chapters, {'a': 0, 'b': 3, 'c': 4}, 3, 12)
        assert ranges[0].first_page == 3
        assert ranges[-1].last_page == 11
        for left, right in zip(ranges, ranges[1:]):
            assert right.first_page == left.last_page + 1

    def test_same_start_drops_earlier_chapter(self):
        ranges = compute_chapter_ranges(
            [chapter('a'), chapter('b'), chapter('c')], {'a': 0, 'b': 0, 'c': 2}, 1, 5,
        )
        assert [r.chapter_id for r in ranges] == ['b', 'c']
        assert (ranges[0].first_page, ranges[0].last_page) == (1, 2)

    def test_missing_anchor_defaults_to_content_start(self):
        ranges = compute_chapter_ranges([chapter('a'), chapter('b')], {'b': 1}, 2, 4)
        assert [(r.chapter_id, r.first_page, r.last_page) for r in ranges] == [
            ('a', 2, 2), ('b', 3, 3),
        ]

    def test_out_of_order_anchors_sorted_by_start(self):
        ranges = compute_chapter_ranges([chapter('a'), chapter('b')], {'a': 2, 'b': 0}, 0, 4)
        assert [r.chapter_id for r in ranges] == ['b', 'a']
        assert ranges[0].last_page == 1

    def test_start_past_end_is_dropped(self):
        ranges = compute_chapter_ranges([chapter('a'), chapter('b')], {'a': 0, 'b': 9}, 1, 3)
        assert [(r.chapter_id, r.last_page) for r in ranges] == [('a', 2)]

    def test_no_chapters(self):
        assert compute_chapter_ranges([], {}, 1, 1) == []


class TestTitleForPage:
    def setup_method(self):
        self.ranges = compute_chapter_ranges(
            [chapter('intro', 'Intro'), chapter('methods', 'Methods')],
            {'intro': 0, 'methods': 1}, 2, 5,
        )

    def test_inside_ranges(self):
        assert chapter_title_for_page(self.ranges, 2) == 'Intro'
        assert chapter_title_for_page(self.ranges, 3) == 'Methods'
        assert chapter_title_for_page(self.ranges, 4) == 'Methods'

    def test_outside_ranges(self):
        assert chapter_title_for_page(self.ranges, 1) == ''
        assert chapter_title_for_page(self.ranges, 0) == ''
        assert chapter_title_for_page([], 3) == ''
