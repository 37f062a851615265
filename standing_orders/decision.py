"""
Clinical decision flow: walk a chapter's decision-bearing subchapters, collect yes/no
examination findings, and compute the cases (diagnoses) those findings support.

States run subChapters → subSubChapters → history → examinationActions → examination
→ diagnosis. The subSubChapters state is skipped when the chosen subchapter carries
history or examination actions itself.

Case matching:
  - decisionDependencies non-empty: the dependency rule alone decides (see dependency_rule)
  - otherwise: matched findings / case findings >= decisionScore; no findings never matches
"""

import logging
import re
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, Field

from standing_orders.models import (
    Book,
    Case,
    Chapter,
    Decision,
    DecisionItem,
    DecisionNode,
    ExaminationResponse,
    Response,
    SubChapter,
    SubSubChapter,
    UserSelections,
)
from standing_orders.normalize import decision_for
from standing_orders.storage import KeyValueStore, clear_state, load_state, save_state

log = logging.getLogger(__name__)

DependencyRule = Callable[[Case, set], bool]

AGE_RANGE_RE = re.compile(r"\((.*?)\)")

_DECISION_FIELDS = ("history", "examinations_actions", "findings_on_examination", "cases")


class FlowError(RuntimeError):
    """Raised for a transition that is not allowed from the current state."""


class FlowState(str, Enum):
    SUB_CHAPTERS = "subChapters"
    SUB_SUB_CHAPTERS = "subSubChapters"
    HISTORY = "history"
    EXAMINATION_ACTIONS = "examinationActions"
    EXAMINATION = "examination"
    DIAGNOSIS = "diagnosis"


# ---------------------------------------------------------------------------
# Case matching
# ---------------------------------------------------------------------------


def dependency_rule(case: Case, positive: set) -> bool:
    """Any one dependency among the positive findings is enough (OR, not AND)."""
    return any(dep in positive for dep in case.decision_dependencies)


def threshold_rule(case: Case, positive: set) -> bool:
    """Share of the case's findings that are positive must reach decisionScore."""
    findings = case.findings_on_examination
    if not findings:
        return False
    matched = sum(1 for f in findings if f in positive)
    return matched / len(findings) >= (case.decision_score or 0)


def case_matches(case: Case, positive: set, dependency: DependencyRule = dependency_rule) -> bool:
    if case.decision_dependencies:
        return dependency(case, positive)
    return threshold_rule(case, positive)


def get_matching_cases(
    cases: Optional[Iterable[Case]],
    positive_findings: Iterable[str],
    dependency: DependencyRule = dependency_rule,
) -> List[Case]:
    """Cases supported by the positive findings, in their original order."""
    positive = set(positive_findings)
    return [case for case in cases or [] if case_matches(case, positive, dependency)]


# ---------------------------------------------------------------------------
# Chapter inspection
# ---------------------------------------------------------------------------


def has_decision_content(node: Optional[DecisionNode]) -> bool:
    """True if a node has inline decision fields, a hasDecisions flag, or decision data on its first page."""
    if node is None:
        return False
    if node.has_decisions or any(getattr(node, name) for name in _DECISION_FIELDS):
        return True
    first = node.pages[0] if node.pages else None
    for item in (first.items if first is not None else None) or []:
        if isinstance(item, DecisionItem):
            return True
        if any(getattr(item, name, None) for name in _DECISION_FIELDS):
            return True
    return False


def decision_chapters(book: Book) -> List[Chapter]:
    """Chapters offered to the decision maker: those with at least one subchapter."""
    return [c for c in book.content if c is not None and c.sub_chapters]


def age_range(title: str) -> str:
    """Text of the first parenthesised group in a chapter title, e.g. '2 months - 5 years'."""
    m = AGE_RANGE_RE.search(title)
    return m.group(1) if m else ""


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------


class FlowSnapshot(BaseModel):
    """Serializable flow position; node positions are indices into the chapter's lists."""

    state: FlowState = FlowState.SUB_CHAPTERS
    sub_chapter_index: Optional[int] = None
    sub_sub_chapter_index: Optional[int] = None
    node_key: Optional[Tuple[int, Optional[int]]] = None
    responses: Dict[int, Response] = Field(default_factory=dict)
    path: List[str] = Field(default_factory=list)


class DecisionFlow:
    """
    One decision-maker session over a single chapter.

    Examination responses are keyed by the finding's position in the active node's
    findings list, and are cleared whenever a different node becomes active.
    """

    def __init__(self, chapter: Chapter, dependency: DependencyRule = dependency_rule):
        self.chapter = chapter
        self.dependency = dependency
        self.state = FlowState.SUB_CHAPTERS
        self.sub_chapter: Optional[SubChapter] = None
        self.sub_sub_chapter: Optional[SubSubChapter] = None
        self.path: List[str] = [chapter.chapter]
        self._responses: Dict[int, Response] = {}
        self._node_key: Optional[Tuple[int, Optional[int]]] = None
        self.selections = UserSelections(chapter_title=chapter.chapter)

    # -- listings ----------------------------------------------------------

    @property
    def sub_chapters(self) -> List[SubChapter]:
        """Subchapters with decision content, in book order."""
        return [s for s in self.chapter.sub_chapters or [] if has_decision_content(s)]

    @property
    def sub_sub_chapters(self) -> List[SubSubChapter]:
        if self.sub_chapter is None:
            return []
        return [s for s in self.sub_chapter.sub_sub_chapters or [] if has_decision_content(s)]

    # -- active node -------------------------------------------------------

    @property
    def active_node(self) -> Optional[DecisionNode]:
        return self.sub_sub_chapter or self.sub_chapter

    @property
    def title(self) -> str:
        node = self.active_node
        return node.title if node is not None else self.chapter.chapter

    @property
    def decision(self) -> Decision:
        node = self.active_node
        resolved = decision_for(node) if node is not None else None
        return resolved or Decision()

    @property
    def history(self) -> List[str]:
        """History questions; a sub-subchapter without its own falls back to its subchapter's."""
        history = self.decision.history
        if not history and self.sub_sub_chapter is not None and self.sub_chapter is not None:
            parent = decision_for(self.sub_chapter)
            history = parent.history if parent else []
        return history

    @property
    def examination_actions(self) -> List[str]:
        return self.decision.examinations_actions

    @property
    def findings(self) -> List[str]:
        return self.decision.findings_on_examination

    # -- transitions -------------------------------------------------------

    def _require(self, *states: FlowState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise FlowError(f"Not allowed in state '{self.state.value}' (expected {allowed})")

    def _index_of(self, items: Optional[list], node: object, kind: str) -> int:
        for i, candidate in enumerate(items or []):
            if candidate is node:
                return i
        raise FlowError(f"{kind} is not part of '{self.path[-1]}'")

    def _activate(self, key: Tuple[int, Optional[int]]) -> None:
        if key != self._node_key:
            self._responses = {}
            self._node_key = key

    def select_sub_chapter(self, sub: SubChapter) -> FlowState:
        """Pick a subchapter; go straight to history when it has history or exam actions itself."""
        self._require(FlowState.SUB_CHAPTERS)
        index = self._index_of(self.chapter.sub_chapters, sub, "Subchapter")
        self.sub_chapter = sub
        self.sub_sub_chapter = None
        self.selections.sub_chapter_title = sub.sub_chapter_title
        self.path.append(sub.sub_chapter_title)
        decision = decision_for(sub)
        if decision is not None and (decision.history or decision.examinations_actions):
            self._activate((index, None))
            self.state = FlowState.HISTORY
        else:
            self.state = FlowState.SUB_SUB_CHAPTERS
        return self.state

    def select_sub_sub_chapter(self, subsub: SubSubChapter) -> FlowState:
        """Pick a sub-subchapter; always continues to history."""
        self._require(FlowState.SUB_SUB_CHAPTERS)
        sub_index = self._index_of(self.chapter.sub_chapters, self.sub_chapter, "Subchapter")
        index = self._index_of(self.sub_chapter.sub_sub_chapters, subsub, "Sub-subchapter")
        self.sub_sub_chapter = subsub
        self.selections.sub_sub_chapter_title = subsub.sub_sub_chapter_title
        self.path.append(subsub.sub_sub_chapter_title)
        self._activate((sub_index, index))
        self.state = FlowState.HISTORY
        return self.state

    def enter_decision(self, node: DecisionNode) -> FlowState:
        """Jump from a listing straight into a node flagged hasDecisions."""
        if isinstance(node, SubChapter):
            self._require(FlowState.SUB_CHAPTERS)
            index = self._index_of(self.chapter.sub_chapters, node, "Subchapter")
            self.sub_chapter = node
            self.sub_sub_chapter = None
            self.selections.sub_chapter_title = node.sub_chapter_title
            self.selections.sub_sub_chapter_title = None
            self._activate((index, None))
        else:
            self._require(FlowState.SUB_SUB_CHAPTERS)
            sub_index = self._index_of(self.chapter.sub_chapters, self.sub_chapter, "Subchapter")
            index = self._index_of(self.sub_chapter.sub_sub_chapters, node, "Sub-subchapter")
            self.sub_sub_chapter = node
            self.selections.sub_sub_chapter_title = node.title
            self._activate((sub_index, index))
        self.path.append(node.title)
        self.state = FlowState.HISTORY
        return self.state

    def advance(self) -> FlowState:
        """Continue: history → examinationActions → examination → diagnosis."""
        if self.state == FlowState.HISTORY:
            self.state = FlowState.EXAMINATION_ACTIONS
        elif self.state == FlowState.EXAMINATION_ACTIONS:
            self.state = FlowState.EXAMINATION
        elif self.state == FlowState.EXAMINATION:
            # Unanswered findings count as negative.
            for i in range(len(self.findings)):
                self._responses.setdefault(i, "no")
            self.state = FlowState.DIAGNOSIS
            self.selections.matching_diagnoses = self.matching_cases()
        else:
            raise FlowError(f"Cannot continue from state '{self.state.value}'")
        return self.state

    def back(self) -> bool:
        """
        Step back one state. Returns False when already at the subchapter list, meaning the
        caller should leave the flow.
        """
        if self.state == FlowState.DIAGNOSIS:
            self.state = FlowState.EXAMINATION
        elif self.state == FlowState.EXAMINATION:
            self.state = FlowState.EXAMINATION_ACTIONS
        elif self.state == FlowState.EXAMINATION_ACTIONS:
            self.state = FlowState.HISTORY
        elif self.state == FlowState.HISTORY:
            if self.sub_sub_chapter is not None:
                self.sub_sub_chapter = None
                self.selections.sub_sub_chapter_title = None
                self.state = FlowState.SUB_SUB_CHAPTERS
            else:
                self.sub_chapter = None
                self.state = FlowState.SUB_CHAPTERS
            self.path.pop()
        elif self.state == FlowState.SUB_SUB_CHAPTERS:
            self.sub_chapter = None
            self.state = FlowState.SUB_CHAPTERS
            self.path.pop()
        else:
            return False
        return True

    # -- examination responses --------------------------------------------

    def answer(self, finding_index: int, response: Response) -> None:
        """Record a yes/no answer for the finding at `finding_index` of the active node."""
        self._require(FlowState.EXAMINATION)
        if not 0 <= finding_index < len(self.findings):
            raise FlowError(f"No finding at position {finding_index}")
        if response not in ("yes", "no"):
            raise ValueError(f"Response must be 'yes' or 'no', got {response!r}")
        self._responses[finding_index] = response

    def answer_finding(self, finding: str, response: Response) -> None:
        """Record an answer by finding text (first occurrence in the active node's list)."""
        try:
            index = self.findings.index(finding)
        except ValueError:
            raise FlowError(f"Unknown finding: {finding!r}") from None
        self.answer(index, response)

    @property
    def responses(self) -> List[ExaminationResponse]:
        """One entry per finding of the active node; unanswered findings have response None."""
        return [
            ExaminationResponse(question=f, response=self._responses.get(i))
            for i, f in enumerate(self.findings)
        ]

    @property
    def positive_findings(self) -> List[str]:
        findings = self.findings
        return [findings[i] for i in sorted(self._responses) if self._responses[i] == "yes" and i < len(findings)]

    def matching_cases(self) -> List[Case]:
        return get_matching_cases(self.decision.cases, self.positive_findings, self.dependency)

    def result(self) -> UserSelections:
        """Final selections: positive responses only, plus the matching diagnoses."""
        self._require(FlowState.DIAGNOSIS)
        return self.selections.model_copy(
            update={
                "exam_responses": [ExaminationResponse(question=q, response="yes") for q in self.positive_findings],
                "matching_diagnoses": self.matching_cases(),
            }
        )

    # -- persistence -------------------------------------------------------

    def snapshot(self) -> FlowSnapshot:
        sub_index = sub_sub_index = None
        if self.sub_chapter is not None:
            sub_index = self._index_of(self.chapter.sub_chapters, self.sub_chapter, "Subchapter")
            if self.sub_sub_chapter is not None:
                sub_sub_index = self._index_of(
                    self.sub_chapter.sub_sub_chapters, self.sub_sub_chapter, "Sub-subchapter"
                )
        return FlowSnapshot(
            state=self.state,
            sub_chapter_index=sub_index,
            sub_sub_chapter_index=sub_sub_index,
            node_key=self._node_key,
            responses=dict(self._responses),
            path=list(self.path),
        )

    @classmethod
    def restore(
        cls,
        chapter: Chapter,
        snap: FlowSnapshot,
        dependency: DependencyRule = dependency_rule,
    ) -> "DecisionFlow":
        """Rebuild a flow from a snapshot. Positions that no longer exist start the flow over."""
        flow = cls(chapter, dependency)
        try:
            if snap.sub_chapter_index is not None:
                flow.sub_chapter = (chapter.sub_chapters or [])[snap.sub_chapter_index]
                flow.selections.sub_chapter_title = flow.sub_chapter.sub_chapter_title
                if snap.sub_sub_chapter_index is not None:
                    flow.sub_sub_chapter = (flow.sub_chapter.sub_sub_chapters or [])[snap.sub_sub_chapter_index]
                    flow.selections.sub_sub_chapter_title = flow.sub_sub_chapter.sub_sub_chapter_title
        except (IndexError, AttributeError):
            log.warning("Saved decision flow no longer matches chapter '%s'; starting over", chapter.chapter)
            return cls(chapter, dependency)
        flow.state = snap.state
        flow._node_key = snap.node_key
        flow._responses = dict(snap.responses)
        flow.path = list(snap.path) or [chapter.chapter]
        if flow.state == FlowState.DIAGNOSIS:
            flow.selections.matching_diagnoses = flow.matching_cases()
        return flow


DECISION_STATE_KEY = "decision_flow_state"


def save_flow(store: Optional[KeyValueStore], flow: DecisionFlow) -> bool:
    """Best-effort save of the flow position so it survives a restart."""
    return save_state(store, DECISION_STATE_KEY, flow.snapshot())


def load_flow(
    store: Optional[KeyValueStore],
    chapter: Chapter,
    dependency: DependencyRule = dependency_rule,
) -> DecisionFlow:
    """Resume the saved flow for `chapter`, or start a new one."""
    snap = load_state(store, DECISION_STATE_KEY, FlowSnapshot)
    if snap is None or not snap.path or snap.path[0] != chapter.chapter:
        return DecisionFlow(chapter, dependency)
    return DecisionFlow.restore(chapter, snap, dependency)


def discard_flow(store: Optional[KeyValueStore]) -> None:
    clear_state(store, DECISION_STATE_KEY)
