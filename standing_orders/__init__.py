"""
Standing Orders: content engine for a clinical standing-orders book.

Use as a library:

    from standing_orders import load_book, flatten_pages, search
    book = load_book("books/standing_orders.json")
    results = search("malaria", flatten_pages(book.content))

Or run the CLI:

    standing-orders search malaria books/standing_orders.json
"""

from standing_orders.core import BookLoadError, flatten_pages, find_first_page_index, load_book
from standing_orders.decision import DecisionFlow, FlowError, FlowState, get_matching_cases
from standing_orders.models import Book, FlattenedPage, SearchResult, UserSelections
from standing_orders.quiz import QuizSession, score
from standing_orders.search import excerpts, search
from standing_orders.submission import HttpDecisionSink, SubmissionError, build_submission, submit_decision

__all__ = [
    "load_book",
    "flatten_pages",
    "find_first_page_index",
    "search",
    "excerpts",
    "DecisionFlow",
    "FlowState",
    "get_matching_cases",
    "build_submission",
    "submit_decision",
    "HttpDecisionSink",
    "score",
    "QuizSession",
    "Book",
    "FlattenedPage",
    "SearchResult",
    "UserSelections",
    "BookLoadError",
    "FlowError",
    "SubmissionError",
]
