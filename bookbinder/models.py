from dataclasses import dataclass
from enum import Enum
from typing import Optional


class NodeKind(str, Enum):
    PART = "part"
    CHAPTER = "chapter"
    HEADING = "heading"


class FragmentKind(str, Enum):
    COVER = "cover"
    FRONT = "front"
    TOC = "toc"
    CONTENT = "content"


@dataclass(frozen=True)
class ContentNode:
    # One node of the book's content tree
    id: str
    kind: NodeKind
    title: str
    parent_id: Optional[str] = None
    order: float = 0
    body: str = ""
    depth: int = 0  # 1 for top-level nodes, filled in by the linearizer
    chapter_title: str = ""  # nearest enclosing/self chapter title

    @property
    def is_chapter(self) -> bool:
        return self.kind == NodeKind.CHAPTER

    @property
    def is_part(self) -> bool:
        return self.kind == NodeKind.PART


@dataclass
class TocEntry:
    # One line of the table of contents
    label: str
    level: int
    node_id: str
    kind: NodeKind
    page: Optional[int] = None  # 1-based final page, rewritten every TOC pass


@dataclass(frozen=True)
class RenderedFragment:
    # An independently rendered PDF page stream
    kind: FragmentKind
    data: bytes
    page_count: int

    @classmethod
    def empty(cls, kind: FragmentKind) -> "RenderedFragment":
        return cls(kind=kind, data=b"", page_count=0)


@dataclass(frozen=True)
class ChapterRange:
    chapter_id: str
    title: str
    first_page: int  # inclusive, final page index
    last_page: int  # inclusive, final page index

    def contains(self, page_index: int) -> bool:
        return self.first_page <= page_index <= self.last_page


@dataclass(frozen=True)
class AssembledDocument:
    data: bytes
    cover_pages: int
    front_pages: int
    toc_pages: int
    total_pages: int

    @property
    def content_offset(self) -> int:
        # Final page index where the content fragment starts
        return self.cover_pages + self.front_pages + self.toc_pages

    def page_counts(self) -> dict:
        return {
            'cover_pages': self.cover_pages,
            'front_pages': self.front_pages,
            'toc_pages': self.toc_pages,
            'total_pages': self.total_pages,
        }


@dataclass
class RenderOutput:
    # What a render engine hands back for one HTML document
    data: bytes
    page_count: int
