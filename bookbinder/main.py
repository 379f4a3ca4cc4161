import argparse
import sys
import threading
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .anchors import resolve_anchors
from .assembler import assemble
from .config import BindOptions, BookManifest, Template, clamp_toc_depth, load_manifest
from .errors import BookBinderError, RenderCancelled
from .linearizer import chapters, linearize
from .markup import content_document, cover_document, front_document, page_css, toc_document
from .models import ChapterRange, ContentNode, FragmentKind, RenderedFragment, TocEntry
from .ranges import compute_chapter_ranges
from .renderers import RenderEngine, RenderSession, get_renderer
from .stamper import StampStyle, stamp_pages, template_text
from .toc import build_toc_entries, page_targets, resolve_toc


class RenderStatus(str, Enum):
    QUEUED = "queued"
    RENDERING = "rendering"
    DONE = "done"
    ERROR = "error"


@dataclass
class BindResult:
    data: bytes
    cover_pages: int
    front_pages: int
    toc_pages: int
    total_pages: int
    chapter_ranges: List[ChapterRange]
    toc_entries: List[TocEntry]
    toc_iterations: int
    toc_converged: bool
    diagnostics: List[BookBinderError] = field(default_factory=list)

    def page_counts(self) -> Dict[str, int]:
        return {
            'cover_pages': self.cover_pages,
            'front_pages': self.front_pages,
            'toc_pages': self.toc_pages,
            'total_pages': self.total_pages,
        }


class BookBinder:

    def __init__(
        self,
        title: str,
        nodes: Sequence[Any],
        template: Optional[Template] = None,
        options: Optional[BindOptions] = None,
        engine: Optional[RenderEngine] = None,
        year: Optional[str] = None,
        toc_depth: Optional[int] = None,
        root_id: Optional[str] = None,
        verbose: bool = True
    ):
        self.title = title
        self.nodes = list(nodes)
        self.template = template or Template()
        self.options = options or BindOptions()
        self.year = year or str(date.today().year)
        self.verbose = verbose
        self.root_id = root_id  # bind only this node and its descendants
        self.status = RenderStatus.QUEUED
        self._cancel_requested = threading.Event()

        if toc_depth is not None:
            self.toc_depth = clamp_toc_depth(toc_depth)
        elif self.options.toc_depth is not None:
            self.toc_depth = self.options.toc_depth
        else:
            self.toc_depth = self.template.toc_depth

        # One engine per binder so nothing is shared between requests.
        self.engine = engine or get_renderer(
            self.options.engine,
            text_backend=self.options.text_backend,
            base_url=self.options.base_url,
            timeout=self.options.render_timeout,
        )
        self._session: Optional[RenderSession] = None

    @classmethod
    def from_manifest(cls, manifest: BookManifest, **kwargs) -> "BookBinder":
        kwargs.setdefault('toc_depth', manifest.toc_depth)
        return cls(
            title=manifest.title,
            nodes=manifest.nodes,
            template=manifest.template,
            options=manifest.options,
            year=manifest.year,
            **kwargs
        )

    def _log(self, message: str):
        # Print log message if verbose mode is on.
        if self.verbose:
            print(message)

    def cancel(self):
        # Abort the request; in-flight renders are dropped. Also honoured
        # when called before bind() has started rendering.
        self._cancel_requested.set()
        if self._session is not None:
            self._session.cancel()

    def bind(self) -> BindResult:
        # Run the whole pipeline; any fatal error leaves status at ERROR.
        self.status = RenderStatus.RENDERING
        try:
            result = self._bind()
        except BaseException:
            self.status = RenderStatus.ERROR
            raise
        self.status = RenderStatus.DONE
        return result

    def _bind(self) -> BindResult:
        diagnostics: List[BookBinderError] = []

        # Step 1: Linearize the content tree (rejects bad trees before rendering)
        self._log("\n=== Step 1: Linearizing content ===")
        sequence = linearize(self.nodes, root_id=self.root_id)
        chapter_nodes = chapters(sequence)
        self._log(f"Found {len(sequence)} nodes, {len(chapter_nodes)} chapters")

        css = page_css(self.template)
        session = RenderSession(
            self.engine,
            call_timeout=self.options.render_timeout,
            total_budget=self.options.total_budget,
        )
        self._session = session
        if self._cancel_requested.is_set():
            session.close()
            raise RenderCancelled("Render request was cancelled before rendering")

        with session:
            # Step 2: Render cover, front matter and content side by side
            self._log("\n=== Step 2: Rendering cover, front matter and content ===")
            cover, front, content = self._render_fragments(session, sequence, css)
            self._log(f"Cover: {cover.page_count} page(s)")
            if front is not None:
                self._log(f"Front matter: {front.page_count} page(s)")
            self._log(f"Content: {content.page_count} page(s)")

            # Step 3: Find where each chapter landed
            self._log("\n=== Step 3: Resolving chapter anchors ===")
            resolution = resolve_anchors(self.engine, content, [c.id for c in chapter_nodes])
            anchor_map = resolution.anchor_map
            diagnostics.extend(resolution.missing)
            self._log(f"Located {len(anchor_map)} of {len(chapter_nodes)} chapters")

            # Step 4: Stabilize the table of contents
            self._log("\n=== Step 4: Resolving table of contents ===")
            entries = build_toc_entries(sequence, self.toc_depth, self.options.number_chapters)
            leading_pages = cover.page_count + (front.page_count if front is not None else 0)

            def render_toc(toc_entries: List[TocEntry], attempt: int) -> RenderedFragment:
                html = toc_document(toc_entries, self.template, self.title, self.year)
                return session.render(FragmentKind.TOC, html, css, iteration=attempt)

            toc = resolve_toc(
                entries,
                page_targets(sequence),
                anchor_map,
                leading_pages,
                render_toc,
                max_attempts=self.options.max_toc_attempts,
            )
            diagnostics.extend(toc.diagnostics)
            if toc.fragment is None:
                self._log("No TOC entries, skipping table of contents")
            else:
                state = "converged" if toc.converged else "did not converge"
                self._log(f"TOC {state} at {toc.toc_pages} page(s) after {toc.iterations} pass(es)")

        # Step 5: Merge fragments
        self._log("\n=== Step 5: Assembling document ===")
        document = assemble(cover, content, front=front, toc=toc.fragment)
        self._log(f"Total: {document.total_pages} page(s)")

        # Step 6: Chapter ranges and running headers
        self._log("\n=== Step 6: Stamping headers and footers ===")
        ranges = compute_chapter_ranges(
            chapter_nodes, anchor_map, document.content_offset, document.total_pages
        )
        for r in ranges:
            self._log(f"  - {r.title} (pages {r.first_page + 1}-{r.last_page + 1})")

        data = stamp_pages(
            document.data,
            document.cover_pages,
            self.title,
            ranges,
            style=self._stamp_style(),
            year=self.year,
        )

        if diagnostics:
            self._log(f"\nCompleted with {len(diagnostics)} warning(s):")
            for warning in diagnostics:
                self._log(f"  ! {warning}")

        return BindResult(
            data=data,
            cover_pages=document.cover_pages,
            front_pages=document.front_pages,
            toc_pages=document.toc_pages,
            total_pages=document.total_pages,
            chapter_ranges=ranges,
            toc_entries=toc.entries,
            toc_iterations=toc.iterations,
            toc_converged=toc.converged,
            diagnostics=diagnostics,
        )

    def _render_fragments(self, session: RenderSession, sequence: List[ContentNode], css: str):
        cover_html = cover_document(self.template, self.title, self.year)
        front_html = front_document(self.template, self.title, self.year)

        pending = {FragmentKind.COVER: session.submit(FragmentKind.COVER, cover_html, css)}
        if front_html is not None:
            pending[FragmentKind.FRONT] = session.submit(FragmentKind.FRONT, front_html, css)
        if sequence:
            content_html = content_document(sequence, self.title, self.options.number_chapters)
            pending[FragmentKind.CONTENT] = session.submit(FragmentKind.CONTENT, content_html, css)

        rendered = {kind: session.result(kind, future) for kind, future in pending.items()}

        # An empty book still gets a (zero-page) content fragment.
        content = rendered.get(FragmentKind.CONTENT) or RenderedFragment.empty(FragmentKind.CONTENT)
        return rendered[FragmentKind.COVER], rendered.get(FragmentKind.FRONT), content

    def _stamp_style(self) -> StampStyle:
        style = StampStyle(font_path=self.options.font_path, max_chars=self.options.header_max_chars)
        header = template_text(self.template.header_html)
        footer = template_text(self.template.footer_html)
        if header:
            style.header_left = header
            if "{{CHAPTER_TITLE}}" in header:
                style.header_right = ""
        if footer:
            style.footer_center = footer
        return style


def main():
    # CLI entry point.
    parser = argparse.ArgumentParser(
        description="bookbinder - Bind a book manifest into one paginated PDF"
    )
    parser.add_argument(
        "manifest",
        help="Book manifest (JSON with title, nodes, template, options)"
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output PDF path (default: <manifest>.pdf)"
    )
    parser.add_argument(
        "--engine",
        choices=['weasyprint', 'wkhtmltopdf'],
        help="Render engine (default: weasyprint)"
    )
    parser.add_argument(
        "--text-backend",
        choices=['pdfplumber', 'pymupdf'],
        help="Library used to read page text (default: pdfplumber)"
    )
    parser.add_argument(
        "--toc-depth",
        type=int,
        help="Deepest level listed in the table of contents (1-6)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds allowed per render call"
    )
    parser.add_argument(
        "--budget",
        type=float,
        help="Seconds allowed for the whole book"
    )
    parser.add_argument(
        "--item",
        help="Bind only this node and its subtree (single-item preview)"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output messages"
    )

    args = parser.parse_args()

    try:
        manifest = load_manifest(args.manifest)
        _apply_overrides(manifest.options, {
            'engine': args.engine,
            'text_backend': args.text_backend,
            'toc_depth': args.toc_depth,
            'render_timeout': args.timeout,
            'total_budget': args.budget,
        })
        output = Path(args.output) if args.output else Path(args.manifest).with_suffix(".pdf")

        binder = BookBinder.from_manifest(manifest, root_id=args.item, verbose=not args.quiet)
        result = binder.bind()

        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(result.data)

        if not args.quiet:
            print("\nPage counts:")
            for key, value in result.page_counts().items():
                print(f"  {key}: {value}")
            print(f"\nCreated: {output}")

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def _apply_overrides(options: BindOptions, overrides: Mapping[str, Any]):
    # CLI flags win over manifest options; re-run validation afterwards.
    for key, value in overrides.items():
        if value is not None:
            setattr(options, key, value)
    options.__post_init__()


if __name__ == "__main__":
    main()
