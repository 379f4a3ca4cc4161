"""
bookbinder - Book Pagination Pipeline

Binds a content tree into one PDF:
1. Cover, front matter, table of contents and content rendered from HTML
2. TOC page numbers resolved against the rendered layout
3. Running chapter headers and page numbers stamped on every page
"""

__version__ = "1.0.0"
