"""Resolve the book a tool should work on: an explicit path or the configured default."""

from pathlib import Path
from typing import Optional

from standing_orders.config import get_book_path
from standing_orders.core import load_book
from standing_orders.models import Book


def open_book(path: Optional[Path] = None) -> Book:
    """Load the book at `path`, or at config book_path. Raises ValueError if neither is usable."""
    resolved = get_book_path(path)
    if resolved is None:
        raise ValueError("No book path: pass one or set it with `config set book_path <file>`.")
    return load_book(resolved)
