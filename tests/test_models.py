import pytest
from pydantic import ValidationError

from standing_orders.core import flatten_pages, load_book
from standing_orders.models import (
    Book,
    Case,
    Decision,
    DecisionNode,
    FlattenedPage,
    HeadingItem,
    LinkableItem,
    ListItem,
    NestedListItem,
    Page,
    QuizQuestion,
    SubChapter,
    TableCell,
    TextItem,
    UnknownItem,
)


class TestContentItems:
    def test_unknown_and_missing_types_are_kept(self):
        page = Page.model_validate({"items": [{"type": "carousel", "slides": []}, {"content": "no type"}]})
        assert all(isinstance(item, UnknownItem) for item in page.items)
        assert page.items[0].type == "carousel"
        assert page.items[0].slides == []

    def test_heading_levels(self):
        page = Page.model_validate({"items": [{"type": "heading2", "content": "Dosage"}]})
        assert isinstance(page.items[0], HeadingItem)
        assert page.items[0].type == "heading2"

    def test_list_entry_shapes(self):
        item = ListItem.model_validate(
            {
                "type": "orderedList",
                "items": [
                    "plain",
                    {"type": "text", "content": "text item"},
                    {"type": "linkable", "content": [{"text": "see page", "linkTo": "p1"}]},
                    {"content": "parent", "nestedItems": {"type": "unorderedList", "items": ["child"]}},
                ],
            }
        )
        plain, text, linkable, nested = item.items
        assert plain == "plain"
        assert isinstance(text, TextItem)
        assert isinstance(linkable, LinkableItem)
        assert linkable.content[0].link_to == "p1"
        assert isinstance(nested, NestedListItem)
        assert nested.nested_items.items == ["child"]

    def test_table_cells_accept_strings_and_dicts(self):
        page = Page.model_validate({"items": [{"type": "table", "rows": [["a", {"content": "b", "rowSpan": 2}]]}]})
        row = page.items[0].rows[0]
        assert row[0] == "a"
        assert isinstance(row[1], TableCell)
        assert row[1].row_span == 2


class TestNullEntries:
    def test_null_list_entries_dropped(self):
        item = ListItem.model_validate({"type": "unorderedList", "items": ["a", None, "b"]})
        assert item.items == ["a", "b"]

    def test_null_page_items_dropped(self):
        page = Page.model_validate({"items": [None, {"type": "text", "content": "x"}]})
        assert len(page.items) == 1
        assert isinstance(page.items[0], TextItem)

    def test_null_table_rows_and_cells_dropped(self):
        page = Page.model_validate(
            {"items": [{"type": "table", "headers": [[None, "h"]], "rows": [None, ["a", None]]}]}
        )
        table = page.items[0]
        assert table.headers == [["h"]]
        assert table.rows == [["a"]]

    def test_null_cases_and_findings_dropped(self):
        sub = SubChapter.model_validate(
            {"subChapterTitle": "S", "cases": [None, {"findingsOnExamination": ["f", None]}], "history": [None]}
        )
        assert len(sub.cases) == 1
        assert sub.cases[0].findings_on_examination == ["f"]
        assert sub.history == []

    def test_book_with_null_entries_loads(self):
        book = load_book(
            {
                "content": [
                    {
                        "chapter": "C",
                        "pages": [{"items": [{"type": "unorderedList", "items": ["a", None]}, None]}],
                    }
                ]
            }
        )
        (page,) = flatten_pages(book.content)
        assert page.content[0].items == ["a"]


class TestCase:
    def test_null_lists_become_empty(self):
        case = Case.model_validate({"clinicalJudgement": "X", "decisionDependencies": None, "actions": None})
        assert case.decision_dependencies == []
        assert case.actions == []
        assert case.decision_score == 0.0

    def test_judgement_may_be_a_list(self):
        case = Case.model_validate({"clinicalJudgement": ["A", "B"]})
        assert case.clinical_judgement == ["A", "B"]


class TestHierarchy:
    def test_book_keeps_snake_case_config_keys(self):
        book = Book.model_validate({"bookTitle": "B", "content": [], "cpd_enabled": True, "pointsConfig": {"read": 1}})
        assert book.cpd_enabled is True
        assert book.points_config == {"read": 1.0}

    def test_resolved_decision_is_not_serialized(self):
        sub = SubChapter.model_validate({"subChapterTitle": "S", "history": ["q"]})
        sub.decision = Decision(history=["q"])
        assert "decision" not in sub.model_dump()
        assert sub.title == "S"

    def test_base_node_has_blank_title(self):
        assert DecisionNode().title == ""

    def test_flattened_page_requires_content(self):
        with pytest.raises(ValidationError):
            FlattenedPage(content=[], chapter_title="C")


def test_quiz_question_options_in_order():
    q = QuizQuestion.model_validate(
        {"id": 7, "question": "?", "option1": "a", "option2": "b", "option3": "c", "option4": "d", "correctOption": "option2"}
    )
    assert q.options == ["a", "b", "c", "d"]
    assert q.correct_option == "option2"
