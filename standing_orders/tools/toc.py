"""
TOC tool: list the table of contents of a book. Independent, atomic.
"""

from pathlib import Path
from typing import List, Optional

from standing_orders.core import list_toc
from standing_orders.tools.book import open_book


def run(path: Optional[Path] = None, depth: int = 2) -> List[str]:
    """Load the book (or configured book) and return TOC lines. Raises ValueError if no path."""
    book = open_book(path)
    return list_toc(book, max_depth=depth)
