"""
Search tool: find flattened pages whose content items contain a query, and build the
excerpt shown for each matching item.

Matching is a case-insensitive substring test per item type. Results come back in
page order, never ranked. Nested sub-lists are not searched.
"""

import re
from typing import List, Optional, Tuple

from standing_orders.models import (
    ContentItem,
    FlattenedPage,
    HeadingItem,
    ImageItem,
    ListEntry,
    ListItem,
    SearchHit,
    SearchResult,
    TableCell,
    TableEntry,
    TableItem,
    TextItem,
    VideoItem,
)

EXCERPT_RADIUS = 50

# A word character is [A-Za-z0-9_]; anything else (whitespace included) ends a word.
_BOUNDARY_RE = re.compile(r"[^A-Za-z0-9_]")


def _contains(value: Optional[str], query: str) -> bool:
    return isinstance(value, str) and query in value.lower()


def _entry_text(entry: ListEntry) -> Optional[str]:
    """Searchable text of one list entry: the string itself or a string `content`."""
    if isinstance(entry, str):
        return entry
    content = getattr(entry, "content", None)
    return content if isinstance(content, str) else None


def _cell_text(cell: TableEntry) -> Optional[str]:
    if isinstance(cell, TableCell) and isinstance(cell.content, str):
        return cell.content
    return None


def _table_matches(item: TableItem, query: str) -> bool:
    for row in (item.headers or []) + item.rows:
        if any(_contains(_cell_text(cell), query) for cell in row):
            return True
    return False


def item_matches(item: ContentItem, query: str) -> bool:
    """True if a content item contains the (already lowercased) query."""
    if isinstance(item, (TextItem, HeadingItem)):
        return _contains(item.content, query)
    if isinstance(item, ListItem):
        return any(_contains(_entry_text(entry), query) for entry in item.items)
    if isinstance(item, TableItem):
        return _table_matches(item, query)
    if isinstance(item, ImageItem):
        return _contains(item.alt, query)
    if isinstance(item, VideoItem):
        return _contains(item.title, query) or _contains(item.description, query)
    return False


def search(query: str, pages: List[FlattenedPage]) -> List[SearchResult]:
    """
    Return every page with at least one matching item, in page order.

    Each result keeps the page's fields and adds only the matching items plus the
    page's index in `pages`. A blank query returns no results.
    """
    if not query or not query.strip():
        return []
    needle = query.lower()
    results: List[SearchResult] = []
    for index, page in enumerate(pages):
        matching = [item for item in page.content if item_matches(item, needle)]
        if not matching:
            continue
        results.append(
            SearchResult(
                content=page.content,
                chapter_title=page.chapter_title,
                sub_chapter_title=page.sub_chapter_title,
                sub_sub_chapter_title=page.sub_sub_chapter_title,
                matching_items=matching,
                page_index=index,
            )
        )
    return results


def word_bounds(text: str, start: int, end: int) -> Tuple[int, int]:
    """Widen [start, end) outward until both edges sit on a non-word character or the string edge."""
    while start > 0 and not _BOUNDARY_RE.match(text[start - 1]):
        start -= 1
    while end < len(text) and not _BOUNDARY_RE.match(text[end]):
        end += 1
    return start, end


def text_excerpt(text: str, query: str, radius: int = EXCERPT_RADIUS) -> Optional[str]:
    """
    Snippet of up to `radius` characters either side of the first match, widened so no
    word is cut, then stripped. None if the query does not occur.
    """
    needle = query.lower()
    pos = text.lower().find(needle)
    if pos == -1:
        return None
    raw_start = max(0, pos - radius)
    raw_end = min(len(text), pos + len(needle) + radius)
    start, end = word_bounds(text, raw_start, raw_end)
    return text[start:end].strip()


def list_excerpt(item: ListItem, query: str) -> Optional[str]:
    """Matching entries only, as '• entry' lines or '1. entry' lines numbered among the matches."""
    needle = query.lower()
    texts = [t for t in (_entry_text(e) for e in item.items) if _contains(t, needle)]
    if not texts:
        return None
    if item.type == "orderedList":
        return "\n".join(f"{n}. {t}" for n, t in enumerate(texts, start=1))
    return "\n".join(f"• {t}" for t in texts)


def describe_match(item: ContentItem, query: str, radius: int = EXCERPT_RADIUS) -> Optional[SearchHit]:
    """Build the display excerpt for one matching item, or None if it does not match."""
    needle = query.lower()
    if isinstance(item, TextItem):
        excerpt = text_excerpt(item.content, query, radius)
        return SearchHit(content_type="Text", excerpt=excerpt) if excerpt is not None else None
    if isinstance(item, HeadingItem):
        excerpt = text_excerpt(item.content, query, radius)
        return SearchHit(content_type="Heading", excerpt=excerpt) if excerpt is not None else None
    if isinstance(item, ListItem):
        excerpt = list_excerpt(item, query)
        if excerpt is None:
            return None
        label = "Ordered List" if item.type == "orderedList" else "Unordered List"
        return SearchHit(content_type=label, excerpt=excerpt)
    if isinstance(item, TableItem):
        if _table_matches(item, needle):
            return SearchHit(content_type="Table", excerpt="Match found in Table")
        return None
    if isinstance(item, ImageItem):
        if _contains(item.alt, needle):
            return SearchHit(content_type="Image", excerpt=f"Image Alt: {item.alt}")
        return None
    if isinstance(item, VideoItem):
        if _contains(item.title, needle) or _contains(item.description, needle):
            return SearchHit(content_type="Video", excerpt=f"Video: {item.title or item.description}")
        return None
    return None


def excerpts(result: SearchResult, query: str, radius: int = EXCERPT_RADIUS) -> List[SearchHit]:
    """Excerpts for every matching item of a result, in item order."""
    hits = (describe_match(item, query, radius) for item in result.matching_items)
    return [hit for hit in hits if hit is not None]


def highlight_segments(text: str, query: str) -> List[Tuple[str, bool]]:
    """
    Split text into (segment, is_match) pairs for highlighting. The query is matched
    literally and case-insensitively; a blank query yields the whole text unmarked.
    """
    if not query.strip():
        return [(text, False)]
    pattern = re.compile(f"({re.escape(query)})", re.IGNORECASE)
    needle = query.lower()
    return [(part, part.lower() == needle) for part in pattern.split(text) if part]
