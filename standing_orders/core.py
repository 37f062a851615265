"""
Shared primitives for a loaded book: loading, flattening into pages, and TOC lookups.
No CLI, no typer. Used by the search, decision and CLI modules.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from standing_orders.models import Book, Chapter, FlattenedPage, Page
from standing_orders.normalize import normalize_book

log = logging.getLogger(__name__)


class BookLoadError(ValueError):
    """Raised when a book file cannot be read or does not match the content schema."""


def load_book(source: str | Path | Dict[str, Any]) -> Book:
    """
    Load a book from a JSON file path or an already-decoded dict.

    The ebook endpoint wraps the document as {"book": {...}}; both the wrapped and the
    bare form are accepted. Decision data is normalized before the book is returned.
    """
    if isinstance(source, dict):
        data = source
    else:
        path = Path(source).resolve()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise BookLoadError(f"Cannot read book file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise BookLoadError(f"Book file {path} is not valid JSON: {e}") from e
    if isinstance(data, dict) and isinstance(data.get("book"), dict):
        data = data["book"]
    try:
        book = Book.model_validate(data)
    except ValidationError as e:
        raise BookLoadError(f"Book does not match the content schema: {e}") from e
    return normalize_book(book)


def _page_entry(page: Optional[Page], **titles: Optional[str]) -> Optional[FlattenedPage]:
    if page is None or not page.items:
        log.debug("Skipping empty page under %s", titles.get("chapter_title"))
        return None
    return FlattenedPage(content=page.items, **titles)


def flatten_pages(chapters: Optional[List[Optional[Chapter]]]) -> List[FlattenedPage]:
    """
    Walk the chapter tree in pre-order and return one FlattenedPage per non-empty page.

    Order: a chapter's own pages, then for each subchapter its pages followed by the
    pages of each of its sub-subchapters. Null nodes and pages without items are skipped.
    The index of each entry is the page id used for navigation and search jumps.
    """
    pages: List[FlattenedPage] = []

    def _add(page: Optional[Page], **titles: Optional[str]) -> None:
        entry = _page_entry(page, **titles)
        if entry is not None:
            pages.append(entry)

    for chapter in chapters or []:
        if chapter is None:
            continue
        for page in chapter.pages or []:
            _add(page, chapter_title=chapter.chapter)
        for sub in chapter.sub_chapters or []:
            if sub is None:
                continue
            for page in sub.pages or []:
                _add(page, chapter_title=chapter.chapter, sub_chapter_title=sub.sub_chapter_title)
            for subsub in sub.sub_sub_chapters or []:
                if subsub is None:
                    continue
                for page in subsub.pages or []:
                    _add(
                        page,
                        chapter_title=chapter.chapter,
                        sub_chapter_title=sub.sub_chapter_title,
                        sub_sub_chapter_title=subsub.sub_sub_chapter_title,
                    )
    return pages


def _norm(value: Optional[str]) -> str:
    return (value or "").strip()


def find_first_page_index(
    pages: List[FlattenedPage],
    chapter_title: str,
    sub_chapter_title: Optional[str] = None,
    sub_sub_chapter_title: Optional[str] = None,
) -> int:
    """
    Index of the first flattened page for a TOC entry, or -1.

    An exact match on all three title levels wins. Otherwise the first page under the
    same chapter and subchapter is used, so a heading with no pages of its own jumps to
    its first descendant page. None and "" are treated alike.
    """
    want = (_norm(chapter_title), _norm(sub_chapter_title), _norm(sub_sub_chapter_title))
    for i, page in enumerate(pages):
        have = (_norm(page.chapter_title), _norm(page.sub_chapter_title), _norm(page.sub_sub_chapter_title))
        if have == want:
            return i
    for i, page in enumerate(pages):
        if _norm(page.chapter_title) == want[0] and _norm(page.sub_chapter_title) == want[1]:
            return i
    return -1


def page_key(
    chapter_index: int,
    sub_chapter_index: Optional[int] = None,
    page_index: Optional[int] = None,
) -> str:
    """Stable key for the active TOC item, e.g. '2-0-undefined'."""
    sub = sub_chapter_index if sub_chapter_index is not None else "undefined"
    page = page_index if page_index is not None else "undefined"
    return f"{chapter_index}-{sub}-{page}"


def list_toc(book: Book, max_depth: int = 2, pages: Optional[List[FlattenedPage]] = None) -> List[str]:
    """Return formatted table of contents lines, with the 1-based flattened page each entry opens."""
    if pages is None:
        pages = flatten_pages(book.content)
    lines: List[str] = []

    def _line(depth: int, title: str, index: int) -> None:
        indent = "  " * (depth - 1)
        lines.append(f"{indent}- {title} (p. {index + 1 if index != -1 else '?'})")

    for chapter in book.content:
        if chapter is None:
            continue
        _line(1, chapter.chapter, find_first_page_index(pages, chapter.chapter))
        if max_depth < 2:
            continue
        for sub in chapter.sub_chapters or []:
            if sub is None:
                continue
            _line(2, sub.sub_chapter_title, find_first_page_index(pages, chapter.chapter, sub.sub_chapter_title))
            if max_depth < 3:
                continue
            for subsub in sub.sub_sub_chapters or []:
                if subsub is None:
                    continue
                idx = find_first_page_index(
                    pages, chapter.chapter, sub.sub_chapter_title, subsub.sub_sub_chapter_title
                )
                _line(3, subsub.sub_sub_chapter_title, idx)
    return lines
