import copy
import json

import pytest

from standing_orders.core import flatten_pages, load_book

CHILD = "Child (2 months - 5 years)"

SAMPLE_BOOK = {
    "bookTitle": "Standing Orders",
    "cpd_enabled": True,
    "content": [
        {
            "chapter": "Introduction",
            "pages": [
                {
                    "items": [
                        {"type": "heading1", "content": "Welcome"},
                        {"type": "text", "content": "This book describes the standing orders for community nurses."},
                    ]
                },
                {"items": []},
                None,
            ],
        },
        None,
        {
            "chapter": CHILD,
            "pages": None,
            "subChapters": [
                {
                    "subChapterTitle": "Cough",
                    "pages": [
                        {
                            "items": [
                                {"type": "text", "content": "Cough or difficult breathing is common in young children."},
                                {
                                    "type": "unorderedList",
                                    "items": [
                                        "Check for fast breathing",
                                        "Look for chest indrawing",
                                        {"type": "text", "content": "Listen for stridor"},
                                        {
                                            "content": "Noisy breathing",
                                            "nestedItems": {
                                                "type": "unorderedList",
                                                "items": ["sounds deep inside the chest"],
                                            },
                                        },
                                    ],
                                },
                            ]
                        }
                    ],
                    "history": ["How long has the child been coughing?"],
                    "examinationsActions": ["Count the breaths in one minute"],
                    "findingsOnExamination": ["Fast breathing", "Chest indrawing", "Stridor"],
                    "cases": [
                        {
                            "clinicalJudgement": "Severe pneumonia",
                            "findingsOnExamination": ["Chest indrawing", "Stridor"],
                            "decisionDependencies": ["Chest indrawing", "Stridor"],
                            "actions": ["Refer urgently"],
                        },
                        {
                            "clinicalJudgement": "Pneumonia",
                            "findingsOnExamination": ["Fast breathing", "Chest indrawing"],
                            "decisionScore": 0.5,
                            "actions": ["Give amoxicillin"],
                        },
                        {
                            "clinicalJudgement": "Cough or cold",
                            "findingsOnExamination": [],
                            "decisionScore": 0,
                        },
                    ],
                },
                {
                    "subChapterTitle": "Fever",
                    "hasDecisions": True,
                    "subSubChapters": [
                        {
                            "subSubChapterTitle": "Malaria",
                            "pages": [
                                {
                                    "items": [
                                        {
                                            "type": "table",
                                            "rows": [[{"type": "text", "content": "Malaria test"}, "Positive"]],
                                        },
                                        {"type": "image", "src": "parasite.png", "alt": "Malaria parasite"},
                                        {
                                            "type": "decision",
                                            "history": ["Has the child travelled to a malaria area?"],
                                            "examinationsActions": ["Do a rapid diagnostic test"],
                                            "findingsOnExamination": ["Positive rapid test", "Stiff neck"],
                                            "cases": [
                                                {
                                                    "clinicalJudgement": "Malaria",
                                                    "findingsOnExamination": ["Positive rapid test"],
                                                    "decisionScore": 1.0,
                                                }
                                            ],
                                        },
                                    ]
                                }
                            ],
                        },
                        None,
                        {
                            "subSubChapterTitle": "Measles",
                            "pages": [{"items": [{"type": "video", "src": "rash.mp4", "title": "Measles rash"}]}],
                        },
                    ],
                },
                None,
                {
                    "subChapterTitle": "Reference",
                    "pages": [
                        {
                            "items": [
                                {
                                    "type": "orderedList",
                                    "items": ["Step one: wash hands", "Step two: dry hands", "Step three: wash again"],
                                }
                            ]
                        }
                    ],
                },
            ],
        },
        {
            "chapter": "Adult (over 5 years)",
            "pages": [{"items": [{"type": "text", "content": "Adults are covered in a separate book."}]}],
        },
    ],
}


@pytest.fixture
def book_data():
    return copy.deepcopy(SAMPLE_BOOK)


@pytest.fixture
def book(book_data):
    return load_book(book_data)


@pytest.fixture
def pages(book):
    return flatten_pages(book.content)


@pytest.fixture
def child(book):
    return next(c for c in book.content if c is not None and c.chapter == CHILD)


@pytest.fixture
def book_file(tmp_path, book_data):
    path = tmp_path / "book.json"
    path.write_text(json.dumps({"book": book_data}), encoding="utf-8")
    return path


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config at a fresh file in tmp_path and run from there, with no token in env."""
    cfg = tmp_path / "config.json"
    monkeypatch.setenv("STANDING_ORDERS_CONFIG", str(cfg))
    monkeypatch.delenv("STANDING_ORDERS_API_TOKEN", raising=False)
    monkeypatch.chdir(tmp_path)
    return cfg
