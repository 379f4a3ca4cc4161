"""Binding options, page template and book manifest loading."""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError

MIN_TOC_DEPTH = 1
MAX_TOC_DEPTH = 6
MAX_MARGIN_MM = 60

DEFAULT_MARGIN_MM = {'top': 20, 'bottom': 20, 'left': 18, 'right': 18}

DEFAULT_TEMPLATE_CSS = """\
html, body { margin: 0; padding: 0; }

body {
  font-family: "Times New Roman", serif;
  font-size: 13pt;
  line-height: 1.5;
  text-align: justify;
}

p { margin: 0 0 0.6em 0; text-align: justify; }

section.cover {
  text-align: center;
  padding-top: 35%;
}
section.cover h1 { font-size: 26pt; margin-bottom: 1rem; }
section.cover h2 { font-size: 16pt; margin-top: 0; }

section.front-matter { page-break-after: always; }

nav.toc h1 {
  font-size: 16pt;
  font-weight: bold;
  text-transform: uppercase;
  text-align: center;
  margin-bottom: 1rem;
}
nav.toc ol { list-style: none; padding-left: 0; }
nav.toc li { display: flex; align-items: baseline; font-size: 11pt; margin: 2px 0; }
nav.toc li .label { flex: 1 1 auto; }
nav.toc li .dots { flex: 1 1 auto; border-bottom: 1px dotted #aaa; margin: 0 4px; height: 0; }
nav.toc li .page { flex: 0 0 auto; min-width: 24px; text-align: right; }

section.chapter { page-break-before: always; }
section.chapter:first-child { page-break-before: auto; }

h1.chapter-title {
  font-size: 16pt;
  font-weight: bold;
  text-transform: uppercase;
  text-align: center;
  margin: 0 0 0.75rem 0;
}

h2 {
  font-size: 13pt;
  font-weight: bold;
  text-transform: uppercase;
  margin-top: 0.75rem;
  margin-bottom: 0.25rem;
}

h3 {
  font-size: 13pt;
  font-weight: bold;
  margin-top: 0.75rem;
  margin-bottom: 0.25rem;
}
"""

DEFAULT_COVER_HTML = """\
<section class="cover">
  <h1>{{BOOK_TITLE}}</h1>
  <h2>{{YEAR}}</h2>
</section>"""


def clamp_toc_depth(value: Any) -> int:
    # Non-numeric depths fall back to chapters only.
    try:
        depth = int(value)
    except (TypeError, ValueError):
        return MIN_TOC_DEPTH
    return min(MAX_TOC_DEPTH, max(MIN_TOC_DEPTH, depth))


@dataclass
class Template:
    # Page template markup. Token placeholders: {{BOOK_TITLE}}, {{YEAR}},
    # {{CHAPTER_TITLE}} (and {{PAGE}} in header/footer).
    css: str = DEFAULT_TEMPLATE_CSS
    cover_html: str = DEFAULT_COVER_HTML
    front_matter_html: str = ""
    toc_html: str = ""
    header_html: str = ""
    footer_html: str = ""
    page_size: str = "A4"
    page_margin_mm: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_MARGIN_MM))
    toc_depth: int = MIN_TOC_DEPTH

    def __post_init__(self):
        self.page_size = (self.page_size or "A4").strip() or "A4"
        self.toc_depth = clamp_toc_depth(self.toc_depth)

        margins = dict(DEFAULT_MARGIN_MM)
        margins.update(self.page_margin_mm or {})
        for side in ('top', 'bottom', 'left', 'right'):
            try:
                value = float(margins[side])
            except (TypeError, ValueError):
                raise ConfigError(f"page_margin_mm.{side} is not a number: {margins[side]!r}")
            if not 0 <= value <= MAX_MARGIN_MM:
                raise ConfigError(f"page_margin_mm.{side} must be within 0-{MAX_MARGIN_MM}mm")
            margins[side] = value
        self.page_margin_mm = margins

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Template":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown template keys: {', '.join(unknown)}")
        # Explicit nulls mean "use the default".
        return cls(**{k: v for k, v in data.items() if v is not None})


@dataclass
class BindOptions:
    engine: str = "weasyprint"
    text_backend: str = "pdfplumber"
    toc_depth: Optional[int] = None  # overrides the template when set
    max_toc_attempts: int = 5
    render_timeout: float = 120.0  # seconds per engine call
    total_budget: float = 300.0  # seconds for the whole request
    number_chapters: bool = False
    header_max_chars: int = 60
    font_path: Optional[str] = None
    base_url: Optional[str] = None

    def __post_init__(self):
        if self.toc_depth is not None:
            self.toc_depth = clamp_toc_depth(self.toc_depth)
        if self.max_toc_attempts < 1:
            raise ConfigError("max_toc_attempts must be at least 1")
        if self.render_timeout <= 0 or self.total_budget <= 0:
            raise ConfigError("render_timeout and total_budget must be positive")
        if self.header_max_chars < 2:
            raise ConfigError("header_max_chars must be at least 2")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BindOptions":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown option keys: {', '.join(unknown)}")
        return cls(**data)


@dataclass
class BookManifest:
    title: str
    nodes: List[Dict[str, Any]]
    template: Template
    options: BindOptions
    year: Optional[str] = None

    @property
    def toc_depth(self) -> int:
        if self.options.toc_depth is not None:
            return self.options.toc_depth
        return self.template.toc_depth


def manifest_from_dict(data: Dict[str, Any]) -> BookManifest:
    if not isinstance(data, dict):
        raise ConfigError("Manifest must be a JSON object")

    title = str(data.get('title') or "").strip()
    if not title:
        raise ConfigError("Manifest is missing the book title")

    nodes = data.get('nodes') or []
    if not isinstance(nodes, list) or not all(isinstance(n, dict) for n in nodes):
        raise ConfigError("Manifest 'nodes' must be a list of objects")

    year = data.get('year')
    return BookManifest(
        title=title,
        nodes=nodes,
        template=Template.from_dict(data.get('template')),
        options=BindOptions.from_dict(data.get('options')),
        year=str(year) if year is not None else None,
    )


def load_manifest(path: str) -> BookManifest:
    # Read a book manifest (title, nodes, template, options) from JSON.
    manifest_path = Path(path)
    if not manifest_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    try:
        data = json.loads(manifest_path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Manifest is not valid JSON: {e}") from e

    return manifest_from_dict(data)
