"""
Search tool: run a content search over the flattened pages of a book.
Results are in page order, each with its display excerpts.
"""

from pathlib import Path
from typing import List, Optional, Tuple

from standing_orders.config import load_config
from standing_orders.core import flatten_pages
from standing_orders.models import SearchHit, SearchResult
from standing_orders.search import excerpts, search
from standing_orders.tools.book import open_book


def run(
    path: Optional[Path] = None,
    query: str = "",
    radius: Optional[int] = None,
) -> List[Tuple[SearchResult, List[SearchHit]]]:
    """
    Load the book (or configured book), search it, and pair each result with its excerpts.
    Excerpt radius defaults to config excerpt_radius. Raises ValueError if no path.
    """
    book = open_book(path)
    if radius is None:
        radius = load_config()["excerpt_radius"]
    pages = flatten_pages(book.content)
    return [(r, excerpts(r, query, radius)) for r in search(query, pages)]
