"""
Tests for the content linearizer (bookbinder/linearizer.py)

Run: python -m pytest tests/test_linearizer.py -q
"""

import pytest

from bookbinder.errors import InvalidContentTree
from bookbinder.linearizer import chapters, linearize
from bookbinder.models import ContentNode, NodeKind


class TestOrdering:
    def test_pre_order(self, book_nodes):
        sequence = linearize(book_nodes)
        assert [n.id for n in sequence] == ['p1', 'intro', 'methods', 'sampling', 'p2', 'results']

    def test_siblings_sorted_by_order_key(self):
        nodes = [
            {'id': 'b', 'kind': 'chapter', 'title': 'B', 'order': 2},
            {'id': 'a', 'kind': 'chapter', 'title': 'A', 'order': 1},
            {'id': 'c', 'kind': 'chapter', 'title': 'C', 'order': 3},
        ]
        assert [n.id for n in linearize(nodes)] == ['a', 'b', 'c']

    def test_ties_broken_by_id(self):
        nodes = [
            {'id': 'z', 'kind': 'chapter', 'title': 'Z', 'order': 1},
            {'id': 'm', 'kind': 'chapter', 'title': 'M', 'order': 1},
        ]
        assert [n.id for n in linearize(nodes)] == ['m', 'z']

    def test_order_index_alias(self):
        nodes = [
            {'id': 'x', 'title': 'X', 'order_index': 5},
            {'id': 'y', 'title': 'Y', 'order_index': 0},
        ]
        assert [n.id for n in linearize(nodes)] == ['y', 'x']

    def test_depths(self, book_nodes):
        depths = {n.id: n.depth for n in linearize(book_nodes)}
        assert depths == {'p1': 1, 'intro': 2, 'methods': 2, 'sampling': 3, 'p2': 1, 'results': 2}

    def test_deterministic(self, book_nodes):
        first = linearize(book_nodes)
        second = linearize(list(reversed(book_nodes)))
        assert first == second

    def test_deep_tree_does_not_recurse(self):
        nodes = [{'id': 'n0', 'kind': 'chapter', 'title': 'Root'}]
        for i in range(1, 3000):
            nodes.append({'id': f'n{i}', 'kind': 'heading', 'title': f'H{i}', 'parent_id': f'n{i - 1}'})
        sequence = linearize(nodes)
        assert len(sequence) == 3000
        assert sequence[-1].depth == 3000

    def test_accepts_content_nodes(self):
        nodes = [ContentNode(id='c1', kind=NodeKind.CHAPTER, title='One')]
        assert linearize(nodes)[0].chapter_title == 'One'

    def test_empty_tree(self):
        assert linearize([]) == []


class TestChapterTitle:
    def test_chapter_owns_its_title(self, book_nodes):
        by_id = {n.id: n for n in linearize(book_nodes)}
        assert by_id['intro'].chapter_title == 'Intro'
        assert by_id['results'].chapter_title == 'Results'

    def test_heading_inherits_chapter(self, book_nodes):
        by_id = {n.id: n for n in linearize(book_nodes)}
        assert by_id['sampling'].chapter_title == 'Methods'

    def test_part_is_never_a_chapter_title(self, book_nodes):
        by_id = {n.id: n for n in linearize(book_nodes)}
        assert by_id['p1'].chapter_title == ''
        assert by_id['p2'].chapter_title == ''

    def test_heading_under_bare_part(self):
        nodes = [
            {'id': 'p', 'kind': 'part', 'title': 'Part'},
            {'id': 'h', 'kind': 'heading', 'title': 'Loose', 'parent_id': 'p'},
        ]
        assert linearize(nodes)[1].chapter_title == ''

    def test_kind_derived_from_depth(self):
        nodes = [
            {'id': 'c', 'title': 'Chapter'},
            {'id': 'h', 'title': 'Heading', 'parent_id': 'c'},
        ]
        sequence = linearize(nodes)
        assert [n.kind for n in sequence] == [NodeKind.CHAPTER, NodeKind.HEADING]
        assert sequence[1].chapter_title == 'Chapter'

    def test_chapters_helper(self, book_nodes):
        assert [c.id for c in chapters(linearize(book_nodes))] == ['intro', 'methods', 'results']


class TestInvalidTrees:
    def test_duplicate_id(self):
        nodes = [
            {'id': 'a', 'kind': 'chapter', 'title': 'A'},
            {'id': 'a', 'kind': 'chapter', 'title': 'A again'},
        ]
        with pytest.raises(InvalidContentTree) as exc:
            linearize(nodes)
        assert exc.value.chapter_id == 'a'

    def test_dangling_parent(self):
        nodes = [{'id': 'a', 'title': 'A', 'parent_id': 'ghost'}]
        with pytest.raises(InvalidContentTree) as exc:
            linearize(nodes)
        assert exc.value.chapter_id == 'a'

    def test_self_parent(self):
        with pytest.raises(InvalidContentTree):
            linearize([{'id': 'a', 'title': 'A', 'parent_id': 'a'}])

    def test_cycle(self):
        nodes = [
            {'id': 'root', 'title': 'Root'},
            {'id': 'a', 'title': 'A', 'parent_id': 'b'},
            {'id': 'b', 'title': 'B', 'parent_id': 'a'},
        ]
        with pytest.raises(InvalidContentTree) as exc:
            linearize(nodes)
        assert exc.value.chapter_id in ('a', 'b')

    def test_unknown_kind(self):
        with pytest.raises(InvalidContentTree):
            linearize([{'id': 'a', 'title': 'A', 'kind': 'appendix'}])

    def test_missing_id(self):
        with pytest.raises(InvalidContentTree):
            linearize([{'title': 'No id'}])


class TestSubtree:
    def test_keeps_root_and_descendants(self, book_nodes):
        sequence = linearize(book_nodes, root_id='methods')
        assert [n.id for n in sequence] == ['methods', 'sampling']

    def test_root_rebased_to_depth_one(self, book_nodes):
        sequence = linearize(book_nodes, root_id='methods')
        assert [n.depth for n in sequence] == [1, 2]
        assert sequence[0].parent_id is None
        assert sequence[1].parent_id == 'methods'

    def test_root_is_the_only_chapter(self, book_nodes):
        sequence = linearize(book_nodes, root_id='p1')
        assert [n.id for n in sequence] == ['p1', 'intro', 'methods', 'sampling']
        assert [n.kind for n in sequence] == [
            NodeKind.CHAPTER, NodeKind.HEADING, NodeKind.HEADING, NodeKind.HEADING,
        ]
        assert {n.chapter_title for n in sequence} == {'Part I'}

    def test_leaf_root(self, book_nodes):
        sequence = linearize(book_nodes, root_id='results')
        assert [(n.id, n.depth, n.kind) for n in sequence] == [('results', 1, NodeKind.CHAPTER)]

    def test_unknown_root(self, book_nodes):
        with pytest.raises(InvalidContentTree) as exc:
            linearize(book_nodes, root_id='ghost')
        assert exc.value.chapter_id == 'ghost'

    def test_rest_of_tree_still_validated(self, book_nodes):
        nodes = book_nodes + [{'id': 'stray', 'title': 'Stray', 'parent_id': 'nowhere'}]
        with pytest.raises(InvalidContentTree):
            linearize(nodes, root_id='methods')
