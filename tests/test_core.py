import json

import pytest

from standing_orders.core import BookLoadError, find_first_page_index, flatten_pages, list_toc, load_book, page_key

from .conftest import CHILD


class TestLoadBook:
    def test_from_file_with_envelope(self, book_file):
        book = load_book(book_file)
        assert book.book_title == "Standing Orders"
        assert book.cpd_enabled is True

    def test_bare_dict(self, book_data):
        assert load_book(book_data).content[0].chapter == "Introduction"

    def test_missing_file(self, tmp_path):
        with pytest.raises(BookLoadError, match="Cannot read"):
            load_book(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(BookLoadError, match="not valid JSON"):
            load_book(path)

    def test_schema_mismatch_is_a_value_error(self):
        with pytest.raises(ValueError):
            load_book({"bookTitle": "B", "content": "oops"})


class TestFlattenPages:
    def test_pre_order_and_titles(self, pages):
        located = [(p.chapter_title, p.sub_chapter_title, p.sub_sub_chapter_title) for p in pages]
        assert located == [
            ("Introduction", None, None),
            (CHILD, "Cough", None),
            (CHILD, "Fever", "Malaria"),
            (CHILD, "Fever", "Measles"),
            (CHILD, "Reference", None),
            ("Adult (over 5 years)", None, None),
        ]

    def test_every_page_has_content(self, pages):
        assert all(len(p.content) >= 1 for p in pages)

    def test_deterministic(self, book):
        first = flatten_pages(book.content)
        second = flatten_pages(book.content)
        assert [p.model_dump() for p in first] == [p.model_dump() for p in second]

    def test_empty_and_missing_input(self):
        assert flatten_pages(None) == []
        assert flatten_pages([]) == []
        assert flatten_pages([None]) == []


class TestFindFirstPageIndex:
    def test_exact_match(self, pages):
        assert find_first_page_index(pages, "Introduction") == 0
        assert find_first_page_index(pages, CHILD, "Fever", "Measles") == 3

    def test_titles_are_trimmed_and_blank_equals_none(self, pages):
        assert find_first_page_index(pages, " Introduction ", "", "") == 0
        assert find_first_page_index(pages, CHILD, " Cough ") == 1

    def test_heading_without_pages_opens_first_descendant(self, pages):
        assert find_first_page_index(pages, CHILD, "Fever") == 2

    def test_not_found(self, pages):
        assert find_first_page_index(pages, CHILD) == -1
        assert find_first_page_index(pages, "Missing") == -1


def test_page_key():
    assert page_key(2, 0) == "2-0-undefined"
    assert page_key(1) == "1-undefined-undefined"
    assert page_key(0, 1, 3) == "0-1-3"


class TestListToc:
    def test_two_levels(self, book):
        assert list_toc(book) == [
            "- Introduction (p. 1)",
            f"- {CHILD} (p. ?)",
            "  - Cough (p. 2)",
            "  - Fever (p. 3)",
            "  - Reference (p. 5)",
            "- Adult (over 5 years) (p. 6)",
        ]

    def test_depth_one_and_three(self, book):
        assert list_toc(book, max_depth=1) == [
            "- Introduction (p. 1)",
            f"- {CHILD} (p. ?)",
            "- Adult (over 5 years) (p. 6)",
        ]
        deep = list_toc(book, max_depth=3)
        assert "    - Malaria (p. 3)" in deep
        assert "    - Measles (p. 4)" in deep


def test_book_file_fixture_is_enveloped(book_file):
    assert "book" in json.loads(book_file.read_text(encoding="utf-8"))
