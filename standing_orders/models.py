"""Data models for the standing-orders book, search results, decision flow and quizzes."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel


def _drop_nulls(value: Any) -> Any:
    """Remove null entries from a list; anything else passes through to normal validation."""
    if isinstance(value, list):
        return [entry for entry in value if entry is not None]
    return value


def _drop_null_cells(value: Any) -> Any:
    """Table rows: remove null rows and null cells within each row."""
    if isinstance(value, list):
        return [_drop_nulls(row) for row in value if row is not None]
    return value


# Content authors sometimes write null where an empty list is meant, or inside a list.
StrList = Annotated[list[str], BeforeValidator(lambda v: [] if v is None else _drop_nulls(v))]


class SchemaModel(BaseModel):
    """Base for all book models: camelCase on the wire, snake_case in Python, unknown keys kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# ---------------------------------------------------------------------------
# Content items
# ---------------------------------------------------------------------------


class BaseItem(SchemaModel):
    """Renderer gating flags shared by every content item."""

    only_book: bool | None = Field(default=None, description="Show only in the book renderer")
    only_decision_maker: bool | None = Field(
        default=None, description="Show only in the decision maker"
    )


class TextItem(BaseItem):
    type: Literal["text"] = "text"
    content: str = ""
    style: dict[str, Any] | None = None


class HeadingItem(BaseItem):
    type: Literal["heading1", "heading2", "heading3"]
    content: str = ""


class SpaceItem(BaseItem):
    type: Literal["space"] = "space"
    content: str | None = None


class Link(SchemaModel):
    text: str = ""
    link_to: str | None = None
    link_type: Literal["internal", "external"] = "internal"
    text_style: dict[str, Any] | None = None


class LinkableItem(BaseItem):
    type: Literal["linkable"] = "linkable"
    content: Annotated[list[Link], BeforeValidator(_drop_nulls)] = Field(default_factory=list)
    style: dict[str, Any] | None = None


def _list_entry_tag(value: Any) -> str:
    if isinstance(value, str):
        return "str"
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if kind == "text":
        return "text"
    if kind == "linkable":
        return "linkable"
    return "nested"


class NestedListItem(SchemaModel):
    """A list entry that may carry its own sub-list."""

    content: Union[str, TextItem, LinkableItem] = ""
    nested_items: "ListItem | None" = None


ListEntry = Annotated[
    Union[
        Annotated[str, Tag("str")],
        Annotated[TextItem, Tag("text")],
        Annotated[LinkableItem, Tag("linkable")],
        Annotated[NestedListItem, Tag("nested")],
    ],
    Discriminator(_list_entry_tag),
]


class ListItem(BaseItem):
    """Ordered or unordered list; the type field decides the bullet style."""

    type: Literal["unorderedList", "orderedList"]
    items: Annotated[list[ListEntry], BeforeValidator(_drop_nulls)] = Field(default_factory=list)


class TableCell(SchemaModel):
    """A table cell: any content-item-like dict plus optional span and style."""

    type: str | None = None
    content: Any = None
    row_span: int | None = None
    col_span: int | None = None
    cell_style: dict[str, Any] | None = None


TableEntry = Union[str, TableCell]


class TableItem(BaseItem):
    type: Literal["table"] = "table"
    title: str | None = None
    headers: Annotated[list[list[TableEntry]] | None, BeforeValidator(_drop_null_cells)] = None
    rows: Annotated[list[list[TableEntry]], BeforeValidator(lambda v: [] if v is None else _drop_null_cells(v))] = Field(
        default_factory=list
    )
    show_cell_borders: bool | None = None
    table_style: dict[str, Any] | None = None
    headless: bool | None = None
    items_per_page: int | None = None
    column_count: int | None = None


class ImageItem(BaseItem):
    type: Literal["image"] = "image"
    src: str = ""
    alt: str | None = None
    translate: bool | None = None


class VideoItem(BaseItem):
    type: Literal["video"] = "video"
    src: str = ""
    title: str | None = None
    file_name: str | None = None
    description: str | None = None
    open_external: bool | None = None
    translate: bool | None = None
    youtube: bool | None = None


class InfographicItem(BaseItem):
    type: Literal["infographic"] = "infographic"
    src: str = ""
    alt: str | None = None
    height: float | None = None
    width: float | None = None
    translate: bool | None = None


class SidebarItem(BaseItem):
    type: Literal["sidebar"] = "sidebar"
    content: str = ""


class HorizontalLineItem(BaseItem):
    type: Literal["horizontalLine"] = "horizontalLine"
    style: dict[str, Any] | None = None


class InteractiveItem(BaseItem):
    type: Literal["interactiveContent"] = "interactiveContent"
    interactive_src: str = ""
    interactive_description: str = ""


class QuestionItem(BaseItem):
    type: Literal["question"] = "question"
    question: str = ""
    answer: str = ""


class DownloadableItem(BaseItem):
    type: Literal["downloadable"] = "downloadable"
    label: str = ""
    url: str = ""
    name: str = ""
    file_name: str | None = None


class BookQuizQuestion(SchemaModel):
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""


class BookQuizItem(BaseItem):
    type: Literal["quiz"] = "quiz"
    title: str = ""
    section_id: str | None = None
    duration: float | None = None
    retries: int | None = None
    questions: Annotated[list[BookQuizQuestion], BeforeValidator(_drop_nulls)] = Field(default_factory=list)


class Case(SchemaModel):
    """One candidate diagnosis and its matching rule."""

    findings_on_history: str = ""
    clinical_judgement: str | list[str] = ""
    actions: StrList = Field(default_factory=list)
    findings_on_examination: StrList = Field(default_factory=list)
    health_education: StrList = Field(default_factory=list)
    decision_score: float | None = Field(default=0.0, description="Threshold fraction 0..1")
    decision_dependencies: StrList = Field(
        default_factory=list,
        description="If non-empty, replaces the threshold rule entirely",
    )


CaseList = Annotated[list[Case], BeforeValidator(lambda v: [] if v is None else _drop_nulls(v))]


class DecisionItem(BaseItem):
    type: Literal["decision"] = "decision"
    name: str | None = None
    history: StrList = Field(default_factory=list)
    examinations_actions: StrList = Field(default_factory=list)
    findings_on_examination: StrList = Field(default_factory=list)
    cases: CaseList = Field(default_factory=list)
    health_education: StrList = Field(default_factory=list)


class UnknownItem(BaseItem):
    """Any item whose type is missing or not recognised; kept verbatim, never matched."""

    type: str | None = None


_ITEM_TYPES = {
    "text", "heading1", "heading2", "heading3", "space", "linkable",
    "unorderedList", "orderedList", "table", "image", "video", "infographic",
    "sidebar", "horizontalLine", "interactiveContent", "question",
    "downloadable", "quiz", "decision",
}


def _item_tag(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if kind in ("heading1", "heading2", "heading3"):
        return "heading"
    if kind in ("unorderedList", "orderedList"):
        return "list"
    return kind if kind in _ITEM_TYPES else "unknown"


ContentItem = Annotated[
    Union[
        Annotated[TextItem, Tag("text")],
        Annotated[HeadingItem, Tag("heading")],
        Annotated[SpaceItem, Tag("space")],
        Annotated[LinkableItem, Tag("linkable")],
        Annotated[ListItem, Tag("list")],
        Annotated[TableItem, Tag("table")],
        Annotated[ImageItem, Tag("image")],
        Annotated[VideoItem, Tag("video")],
        Annotated[InfographicItem, Tag("infographic")],
        Annotated[SidebarItem, Tag("sidebar")],
        Annotated[HorizontalLineItem, Tag("horizontalLine")],
        Annotated[InteractiveItem, Tag("interactiveContent")],
        Annotated[QuestionItem, Tag("question")],
        Annotated[DownloadableItem, Tag("downloadable")],
        Annotated[BookQuizItem, Tag("quiz")],
        Annotated[DecisionItem, Tag("decision")],
        Annotated[UnknownItem, Tag("unknown")],
    ],
    Discriminator(_item_tag),
]


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class Page(SchemaModel):
    page_title: str | None = None
    items: Annotated[list[ContentItem] | None, BeforeValidator(_drop_nulls)] = None
    mark_visit: bool | None = None


class Decision(SchemaModel):
    """Canonical decision record for one hierarchy node, after normalization."""

    history: StrList = Field(default_factory=list)
    examinations_actions: StrList = Field(default_factory=list)
    findings_on_examination: StrList = Field(default_factory=list)
    cases: CaseList = Field(default_factory=list)


class DecisionNode(SchemaModel):
    """Fields shared by SubChapter and SubSubChapter: pages plus optional inline decision data."""

    pages: list[Page | None] | None = None
    has_decisions: bool | None = None
    history: Annotated[list[str] | None, BeforeValidator(_drop_nulls)] = None
    examinations_actions: Annotated[list[str] | None, BeforeValidator(_drop_nulls)] = None
    findings_on_examination: Annotated[list[str] | None, BeforeValidator(_drop_nulls)] = None
    cases: Annotated[list[Case] | None, BeforeValidator(_drop_nulls)] = None
    decision: Decision | None = Field(
        default=None,
        exclude=True,
        description="Resolved by standing_orders.normalize; not part of the wire format",
    )

    @property
    def title(self) -> str:
        """Display title; overridden by each level."""
        return ""


class SubSubChapter(DecisionNode):
    sub_sub_chapter_title: str = ""

    @property
    def title(self) -> str:
        return self.sub_sub_chapter_title


class SubChapter(DecisionNode):
    sub_chapter_title: str = ""
    sub_sub_chapters: list[SubSubChapter | None] | None = None

    @property
    def title(self) -> str:
        return self.sub_chapter_title


class Chapter(SchemaModel):
    chapter: str = ""
    pages: list[Page | None] | None = None
    sub_chapters: list[SubChapter | None] | None = None


class Book(SchemaModel):
    """Root document. Configuration scalars are carried through untouched."""

    book_title: str = ""
    sub_title: str | None = None
    heading: str | None = None
    cover_url: str | None = None
    content: list[Chapter | None] = Field(default_factory=list)
    course_name: str | None = None
    training_provider: str | None = None
    cpd_enabled: bool | None = Field(default=None, alias="cpd_enabled")
    content_keystrokes_threshold: float | None = Field(
        default=None, alias="content_keystrokes_threshold"
    )
    topbar_search_threshold: float | None = Field(default=None, alias="topbar_search_threshold")
    cpd_minimum_threshold: float | None = Field(default=None, alias="cpd_minimum_threshold")
    learning_hours_threshold: float | None = Field(default=None, alias="learning_hours_threshold")
    points_multiplier_increment: float | None = Field(
        default=None, alias="points_multiplier_increment"
    )
    points_config: dict[str, float] | None = None
    utils: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


class FlattenedPage(SchemaModel):
    """One non-empty page with its position in the hierarchy."""

    content: list[ContentItem] = Field(min_length=1)
    chapter_title: str
    sub_chapter_title: str | None = None
    sub_sub_chapter_title: str | None = None


class SearchResult(FlattenedPage):
    """A flattened page with at least one matching item."""

    matching_items: list[ContentItem] = Field(default_factory=list)
    page_index: int = Field(description="Index into the flattened page list that was searched")


class SearchHit(SchemaModel):
    """Display excerpt for one matching item."""

    content_type: str
    excerpt: str


# ---------------------------------------------------------------------------
# Decision flow
# ---------------------------------------------------------------------------

Response = Literal["yes", "no"]


class ExaminationResponse(SchemaModel):
    question: str
    response: Response | None = None


class UserSelections(SchemaModel):
    chapter_title: str
    sub_chapter_title: str = ""
    sub_sub_chapter_title: str | None = None
    exam_responses: list[ExaminationResponse] = Field(default_factory=list)
    matching_diagnoses: list[Case] = Field(default_factory=list)


class DecisionSubmission(SchemaModel):
    """Payload accepted by the decision-recording endpoint."""

    case_description: str
    exam_responses: list[ExaminationResponse]
    chapter_title: str
    sub_chapter_title: str
    sub_sub_chapter_title: str | None = None
    matching_diagnoses: list[Case]
    reason: str
    patient_id: str | None = None
    patient_age: str | int | None = None


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------


class QuizQuestion(SchemaModel):
    """One assessment question with four options and the canonical correct option."""

    id: int | str | None = None
    question: str = ""
    option1: str = ""
    option2: str = ""
    option3: str = ""
    option4: str = ""
    correct_option: str = ""

    @property
    def options(self) -> list[str]:
        return [self.option1, self.option2, self.option3, self.option4]


class QuizState(SchemaModel):
    """Persisted progress through one assessment."""

    current_question_index: int = 0
    answers: dict[int, int] = Field(default_factory=dict)
    quiz_started: bool = True
    quiz_completed: bool = False


NestedListItem.model_rebuild()
