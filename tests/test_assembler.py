"""
Tests for fragment assembly (bookbinder/assembler.py)

Run: python -m pytest tests/test_assembler.py -q
"""

import io

import pdfplumber
import pytest

from bookbinder.assembler import assemble
from bookbinder.errors import MissingRequiredFragment, RenderEngineFailure
from bookbinder.models import FragmentKind, RenderedFragment

from fakes import make_pdf


def fragment(kind, *labels):
    return RenderedFragment(kind, make_pdf([[label] for label in labels]), len(labels))


def page_texts(data):
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]


class TestAssemble:
    def test_order_is_cover_front_toc_content(self):
        document = assemble(
            fragment(FragmentKind.COVER, "cover"),
            fragment(FragmentKind.CONTENT, "content-a", "content-b"),
            front=fragment(FragmentKind.FRONT, "front"),
            toc=fragment(FragmentKind.TOC, "toc"),
        )
        texts = page_texts(document.data)
        assert [t.strip() for t in texts] == ["cover", "front", "toc", "content-a", "content-b"]
        assert document.total_pages == 5

    def test_page_counts(self):
        document = assemble(
            fragment(FragmentKind.COVER, "cover"),
            fragment(FragmentKind.CONTENT, "a", "b", "c"),
            toc=fragment(FragmentKind.TOC, "toc-1", "toc-2"),
        )
        assert document.page_counts() == {
            'cover_pages': 1, 'front_pages': 0, 'toc_pages': 2, 'total_pages': 6,
        }
        assert document.content_offset == 3

    def test_total_is_sum_of_parts(self):
        document = assemble(
            fragment(FragmentKind.COVER, "c1", "c2"),
            fragment(FragmentKind.CONTENT, "x"),
            front=fragment(FragmentKind.FRONT, "f"),
        )
        assert document.total_pages == (
            document.cover_pages + document.front_pages + document.toc_pages + 1
        )

    def test_empty_optional_fragments_add_nothing(self):
        document = assemble(
            fragment(FragmentKind.COVER, "cover"),
            fragment(FragmentKind.CONTENT, "content"),
            front=RenderedFragment.empty(FragmentKind.FRONT),
            toc=None,
        )
        assert document.total_pages == 2
        assert document.content_offset == 1

    def test_empty_content(self):
        document = assemble(
            fragment(FragmentKind.COVER, "cover"),
            RenderedFragment.empty(FragmentKind.CONTENT),
        )
        assert document.total_pages == 1


class TestAssembleErrors:
    def test_missing_cover(self):
        with pytest.raises(MissingRequiredFragment) as exc:
            assemble(None, fragment(FragmentKind.CONTENT, "content"))
        assert exc.value.fragment == 'cover'

    def test_missing_content(self):
        with pytest.raises(MissingRequiredFragment) as exc:
            assemble(fragment(FragmentKind.COVER, "cover"), None)
        assert exc.value.fragment == 'content'

    def test_unreadable_fragment(self):
        broken = RenderedFragment(FragmentKind.TOC, b"not a pdf", 1)
        with pytest.raises(RenderEngineFailure) as exc:
            assemble(fragment(FragmentKind.COVER, "cover"), fragment(FragmentKind.CONTENT, "x"), toc=broken)
        assert exc.value.fragment == 'toc'

    def test_page_count_mismatch(self):
        lying = RenderedFragment(FragmentKind.CONTENT, make_pdf([["a"], ["b"]]), 3)
        with pytest.raises(RenderEngineFailure):
            assemble(fragment(FragmentKind.COVER, "cover"), lying)
