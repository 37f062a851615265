"""
Schema adaptation: collapse the two places a node can keep its decision data into one.

A SubChapter or SubSubChapter may carry `history`, `examinationsActions`,
`findingsOnExamination` and `cases` directly, or inside a `decision` content item
on its first page. Direct fields win; the nested item is only used when no
direct field is present. The two are never merged.
"""

import logging

from standing_orders.models import Book, Decision, DecisionItem, DecisionNode, Page

log = logging.getLogger(__name__)

_DIRECT_FIELDS = ("history", "examinations_actions", "findings_on_examination", "cases")


def _has_direct_fields(node: DecisionNode) -> bool:
    return any(getattr(node, name) is not None for name in _DIRECT_FIELDS)


def find_decision_item(pages: list[Page | None] | None) -> DecisionItem | None:
    """First `decision` item on the first page. Later pages never carry the node's decision."""
    if not pages or pages[0] is None:
        return None
    for item in pages[0].items or []:
        if isinstance(item, DecisionItem):
            return item
    return None


def resolve_decision(node: DecisionNode) -> Decision | None:
    """Return the canonical Decision for a node, or None if it has no decision data."""
    nested = find_decision_item(node.pages)
    if _has_direct_fields(node):
        if nested is not None:
            log.debug("Both inline and nested decision data present; using inline fields")
        return Decision(
            history=node.history or [],
            examinations_actions=node.examinations_actions or [],
            findings_on_examination=node.findings_on_examination or [],
            cases=node.cases or [],
        )
    if nested is not None:
        return Decision(
            history=nested.history,
            examinations_actions=nested.examinations_actions,
            findings_on_examination=nested.findings_on_examination,
            cases=nested.cases,
        )
    return None


def decision_for(node: DecisionNode) -> Decision | None:
    """Resolved decision for a node, resolving it on first access for nodes built in code."""
    if node.decision is None:
        node.decision = resolve_decision(node)
    return node.decision


def normalize_book(book: Book) -> Book:
    """Resolve the decision field of every SubChapter and SubSubChapter in place."""
    for chapter in book.content:
        if chapter is None:
            continue
        for sub in chapter.sub_chapters or []:
            if sub is None:
                continue
            sub.decision = resolve_decision(sub)
            for subsub in sub.sub_sub_chapters or []:
                if subsub is None:
                    continue
                subsub.decision = resolve_decision(subsub)
    return book
