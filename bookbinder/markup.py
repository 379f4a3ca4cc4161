"""HTML documents handed to the render engine, one per fragment."""

import html
from typing import Iterable, List, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .anchors import embed_anchor
from .config import Template
from .models import ContentNode, NodeKind, TocEntry

DEFAULT_TOC_HTML = """\
<nav class="toc">
  <h1>Table of Contents</h1>
  <ol id="toc-list"></ol>
</nav>"""

EMPTY_BODY_HTML = '<p class="empty" style="color:#777;"><em>(No content yet)</em></p>'

TOC_INDENT_PX = 14

# Tags and attributes the rich-text editor is allowed to produce.
ALLOWED_TAGS = {
    'p', 'br', 'strong', 'b', 'em', 'i', 'u', 's', 'blockquote', 'code', 'pre',
    'h2', 'h3', 'h4', 'h5', 'ul', 'ol', 'li', 'a', 'table', 'thead', 'tbody',
    'tr', 'th', 'td', 'img', 'hr', 'span', 'sub', 'sup', 'figure', 'figcaption',
}
ALLOWED_ATTRS = {
    'a': {'href', 'title'},
    'img': {'src', 'alt', 'title'},
    'th': {'colspan', 'rowspan'},
    'td': {'colspan', 'rowspan'},
    'span': {'style'},
    'p': {'style'},
    'h2': {'style'},
    'h3': {'style'},
    'h4': {'style'},
    'h5': {'style'},
}
ALLOWED_SCHEMES = {'http', 'https', 'mailto', 'data'}
DROP_WITH_CONTENT = {'script', 'style', 'iframe', 'object', 'embed', 'noscript', 'template'}


def esc(value: str) -> str:
    return html.escape(value or "", quote=True)


def apply_tokens(markup: Optional[str], book_title: str, year: str, chapter_title: str = "") -> str:
    return (
        (markup or "")
        .replace("{{BOOK_TITLE}}", esc(book_title))
        .replace("{{YEAR}}", esc(year))
        .replace("{{CHAPTER_TITLE}}", esc(chapter_title))
    )


def sanitize_body(markup: str) -> str:
    # Reduce author markup to the editor's whitelist before rendering.
    if not markup or not markup.strip():
        return ""

    soup = BeautifulSoup(markup, 'html.parser')

    for tag in soup.find_all(DROP_WITH_CONTENT):
        tag.decompose()

    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue

        allowed = ALLOWED_ATTRS.get(tag.name, set())
        for attr in list(tag.attrs):
            if attr not in allowed:
                del tag.attrs[attr]

        for attr in ('href', 'src'):
            value = tag.get(attr)
            if value is None:
                continue
            value = value.strip()
            scheme = urlsplit(value).scheme.lower()
            if value.startswith("//") or (scheme and scheme not in ALLOWED_SCHEMES):
                del tag.attrs[attr]
            else:
                tag[attr] = value

    return str(soup)


def page_css(template: Template) -> str:
    # @page rule built from size/margins, followed by the template's own CSS.
    m = template.page_margin_mm
    page_rule = (
        "@page {\n"
        f"  size: {template.page_size};\n"
        f"  margin: {m['top']:g}mm {m['right']:g}mm {m['bottom']:g}mm {m['left']:g}mm;\n"
        "}\n"
    )
    return page_rule + (template.css or "")


def wrap_document(body: str, title: str) -> str:
    return (
        "<!doctype html>\n<html>\n<head>\n"
        '  <meta charset="utf-8"/>\n'
        f"  <title>{esc(title)}</title>\n"
        "</head>\n<body>\n"
        f"{body}\n"
        "</body>\n</html>"
    )


def cover_document(template: Template, book_title: str, year: str) -> str:
    return wrap_document(apply_tokens(template.cover_html, book_title, year), book_title)


def front_document(template: Template, book_title: str, year: str) -> Optional[str]:
    # None when the template has no front matter.
    front = apply_tokens(template.front_matter_html, book_title, year)
    if not front.strip():
        return None
    return wrap_document(f'<section class="front-matter">\n{front}\n</section>', book_title)


def node_label(node: ContentNode, chapter_number: Optional[int] = None) -> str:
    if chapter_number is not None:
        return f"{chapter_number}. {node.title}"
    return node.title


def chapter_numbers(sequence: Iterable[ContentNode]) -> dict:
    # node id -> 1-based chapter number, in reading order
    numbers = {}
    for node in sequence:
        if node.kind == NodeKind.CHAPTER:
            numbers[node.id] = len(numbers) + 1
    return numbers


def _section_class(node: ContentNode) -> str:
    if node.kind == NodeKind.CHAPTER:
        return "chapter"
    if node.kind == NodeKind.PART:
        return "part"
    return "section"


def _heading_tag(node: ContentNode) -> str:
    if node.depth <= 1:
        return "h1"
    return "h2" if node.depth == 2 else "h3"


def content_sections(sequence: List[ContentNode], number_chapters: bool = False) -> str:
    numbers = chapter_numbers(sequence) if number_chapters else {}
    sections = []

    for node in sequence:
        tag = _heading_tag(node)
        css_class = _section_class(node)
        title_class = ' class="chapter-title"' if node.kind == NodeKind.CHAPTER else ""
        anchor = embed_anchor(node.id) if node.kind == NodeKind.CHAPTER else ""
        label = node_label(node, numbers.get(node.id))
        body = sanitize_body(node.body) or EMPTY_BODY_HTML

        sections.append(
            f'<section class="{css_class}" id="node-{esc(node.id)}" data-node-id="{esc(node.id)}"'
            f' data-depth="{node.depth}" data-chapter-title="{esc(node.chapter_title)}">\n'
            f"  {anchor}<{tag}{title_class}>{esc(label)}</{tag}>\n"
            f"  {body}\n"
            "</section>"
        )

    return "\n".join(sections)


def content_document(sequence: List[ContentNode], book_title: str, number_chapters: bool = False) -> str:
    main = content_sections(sequence, number_chapters)
    return wrap_document(f'<main id="book-content">\n{main}\n</main>', book_title)


def toc_rows(entries: Iterable[TocEntry]) -> List[str]:
    rows = []
    for entry in entries:
        # Entries without a page (a part with no chapter) are left out.
        if entry.page is None:
            continue
        pad = max(0, (entry.level - 1) * TOC_INDENT_PX)
        style = f' style="padding-left:{pad}px"' if pad else ""
        rows.append(
            f'<li class="toc-{entry.kind.value}"{style}>'
            f'<span class="label">{esc(entry.label)}</span>'
            '<span class="dots"></span>'
            f'<span class="page">{entry.page}</span>'
            '</li>'
        )
    return rows


def toc_document(entries: Iterable[TocEntry], template: Template, book_title: str, year: str) -> str:
    skeleton = apply_tokens(template.toc_html, book_title, year) or DEFAULT_TOC_HTML
    soup = BeautifulSoup(skeleton, 'html.parser')

    toc_list = soup.find(id="toc-list")
    if toc_list is None:
        # Skeleton without a list: append one to its nav (or to the end).
        container = soup.find('nav') or soup
        toc_list = soup.new_tag('ol', id="toc-list")
        container.append(toc_list)

    toc_list.clear()
    rows = BeautifulSoup("".join(toc_rows(entries)), 'html.parser')
    for row in list(rows.contents):
        toc_list.append(row)

    return wrap_document(str(soup), book_title)
