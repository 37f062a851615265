"""
Read tool: plain-text rendering of one flattened page. Independent, atomic.
"""

from pathlib import Path
from typing import List, Optional

from standing_orders.core import flatten_pages
from standing_orders.models import (
    ContentItem,
    DecisionItem,
    HeadingItem,
    ImageItem,
    InfographicItem,
    LinkableItem,
    ListItem,
    NestedListItem,
    SidebarItem,
    TableCell,
    TableItem,
    TextItem,
    VideoItem,
)
from standing_orders.tools.book import open_book


def _entry_text(entry) -> str:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, LinkableItem):
        return "".join(link.text for link in entry.content)
    if isinstance(entry, NestedListItem):
        return _entry_text(entry.content)
    return getattr(entry, "content", "") or ""


def _list_lines(item: ListItem, indent: str = "") -> List[str]:
    lines = []
    for n, entry in enumerate(item.items, start=1):
        bullet = f"{n}." if item.type == "orderedList" else "•"
        lines.append(f"{indent}{bullet} {_entry_text(entry)}")
        if isinstance(entry, NestedListItem) and entry.nested_items is not None:
            lines.extend(_list_lines(entry.nested_items, indent + "  "))
    return lines


def _cell(cell) -> str:
    if isinstance(cell, TableCell):
        return cell.content if isinstance(cell.content, str) else ""
    return cell


def render_item(item: ContentItem) -> List[str]:
    """Plain-text lines for one content item; media become a one-line label."""
    if isinstance(item, HeadingItem):
        return [item.content.upper() if item.type == "heading1" else item.content]
    if isinstance(item, (TextItem, SidebarItem)):
        return [item.content]
    if isinstance(item, ListItem):
        return _list_lines(item)
    if isinstance(item, LinkableItem):
        return ["".join(link.text for link in item.content)]
    if isinstance(item, TableItem):
        rows = (item.headers or []) + item.rows
        return [" | ".join(_cell(c) for c in row) for row in rows]
    if isinstance(item, (ImageItem, InfographicItem)):
        return [f"[{item.type}: {item.alt or item.src}]"]
    if isinstance(item, VideoItem):
        return [f"[video: {item.title or item.description or item.src}]"]
    if isinstance(item, DecisionItem):
        return [f"[decision: {item.name or 'clinical decision'}]"]
    return []


def run(path: Optional[Path] = None, page_number: int = 1) -> str:
    """
    Render the page at 1-based `page_number` of the flattened book.
    Raises ValueError if no path or the page does not exist.
    """
    book = open_book(path)
    pages = flatten_pages(book.content)
    if not 1 <= page_number <= len(pages):
        raise ValueError(f"Page {page_number} out of range (book has {len(pages)} pages)")
    page = pages[page_number - 1]
    crumbs = [t for t in (page.chapter_title, page.sub_chapter_title, page.sub_sub_chapter_title) if t]
    lines = [" > ".join(crumbs), ""]
    for item in page.content:
        lines.extend(render_item(item))
    return "\n".join(lines)
