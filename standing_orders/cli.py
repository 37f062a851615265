"""
CLI entry point: browse, search and run the decision maker from the shell.

    standing-orders toc path/to/book.json
    standing-orders search "malaria" path/to/book.json
    standing-orders read 12 path/to/book.json
    standing-orders decide 2 path/to/book.json --submit --reason Tutoring
    standing-orders quiz-score assessment.json 0=1 1=3
    standing-orders config set book_path books/standing_orders.json
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer

from standing_orders.config import get_api_token, get_state_path, load_config
from standing_orders.core import flatten_pages
from standing_orders.decision import (
    DecisionFlow,
    FlowState,
    age_range,
    decision_chapters,
    discard_flow,
    load_flow,
    save_flow,
)
from standing_orders.models import Case
from standing_orders.quiz import questions_from_assessment, score
from standing_orders.search import highlight_segments
from standing_orders.storage import JsonFileStore
from standing_orders.submission import REASONS, HttpDecisionSink, SubmissionError, submit_decision
from standing_orders.tools import config_app
from standing_orders.tools import read as read_tool
from standing_orders.tools import search as search_tool
from standing_orders.tools import toc as toc_tool
from standing_orders.tools.book import open_book

app = typer.Typer(
    name="standing-orders",
    help="Browse and search standing-order books and run the clinical decision maker.",
)
app.add_typer(config_app, name="config")


@app.callback()
def _main(verbose: bool = typer.Option(False, "-v", "--verbose", help="Print diagnostic info")) -> None:
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _emphasize(text: str, query: str) -> str:
    return "".join(
        typer.style(part, bold=True, fg=typer.colors.GREEN) if hit else part
        for part, hit in highlight_segments(text, query)
    )


@app.command("toc")
def toc_cmd(
    path: Optional[Path] = typer.Argument(None, help="Book JSON file (default: config book_path)"),
    depth: int = typer.Option(2, "--depth", "-d", help="Max depth to display (1-3)"),
) -> None:
    """Show Table of Contents with the page each entry opens."""
    try:
        lines = toc_tool.run(path, depth=depth)
    except ValueError as e:
        _fail(str(e))
    for line in lines:
        typer.echo(line)


@app.command("pages")
def pages_cmd(
    path: Optional[Path] = typer.Argument(None, help="Book JSON file (default: config book_path)"),
) -> None:
    """List every non-empty page in reading order with its location."""
    try:
        book = open_book(path)
    except ValueError as e:
        _fail(str(e))
    for i, page in enumerate(flatten_pages(book.content), start=1):
        crumbs = [t for t in (page.chapter_title, page.sub_chapter_title, page.sub_sub_chapter_title) if t]
        typer.echo(f"{i:4d}  {' > '.join(crumbs)}  ({len(page.content)} items)")


@app.command("search")
def search_cmd(
    query: str = typer.Argument(..., help="Text to look for (case-insensitive)"),
    path: Optional[Path] = typer.Argument(None, help="Book JSON file (default: config book_path)"),
    radius: Optional[int] = typer.Option(None, "--radius", "-r", help="Excerpt characters around a match"),
) -> None:
    """Search page content; results are listed in page order."""
    try:
        results = search_tool.run(path, query=query, radius=radius)
    except ValueError as e:
        _fail(str(e))
    if not results:
        typer.echo("No results found.")
        return
    for result, hits in results:
        crumbs = [t for t in (result.chapter_title, result.sub_chapter_title, result.sub_sub_chapter_title) if t]
        typer.echo(f"Page {result.page_index + 1}: {' > '.join(crumbs)}")
        for hit in hits:
            typer.echo(f"  [{hit.content_type}]")
            for line in hit.excerpt.splitlines():
                typer.echo(f"    {_emphasize(line, query)}")


@app.command("read")
def read_cmd(
    page: int = typer.Argument(..., help="1-based page number (as shown by toc/search)"),
    path: Optional[Path] = typer.Argument(None, help="Book JSON file (default: config book_path)"),
    highlight: str = typer.Option("", "--highlight", help="Emphasize this text in the page"),
) -> None:
    """Print one page of the book as plain text."""
    try:
        text = read_tool.run(path, page_number=page)
    except ValueError as e:
        _fail(str(e))
    typer.echo(_emphasize(text, highlight) if highlight.strip() else text)


def _pick(prompt: str, count: int) -> Optional[int]:
    """Prompt for 1..count; 0 means back. Returns a 0-based index or None for back."""
    while True:
        choice = typer.prompt(f"{prompt} (1-{count}, 0 to go back)", type=int)
        if choice == 0:
            return None
        if 1 <= choice <= count:
            return choice - 1
        typer.echo("Out of range.")


def _print_case(n: int, case: Case) -> None:
    judgement = case.clinical_judgement
    if isinstance(judgement, list):
        judgement = "; ".join(judgement)
    typer.echo(f"{n}. {judgement or case.findings_on_history}")
    for finding in case.findings_on_examination:
        typer.echo(f"     finding: {finding}")
    for action in case.actions:
        typer.echo(f"     action:  {action}")


def _run_flow(flow: DecisionFlow, store: JsonFileStore) -> bool:
    """Drive the flow interactively until diagnosis. Returns False if the user backs out."""
    while flow.state != FlowState.DIAGNOSIS:
        save_flow(store, flow)
        typer.echo("")
        typer.echo(" › ".join(flow.path))
        if flow.state in (FlowState.SUB_CHAPTERS, FlowState.SUB_SUB_CHAPTERS):
            nodes = flow.sub_chapters if flow.state == FlowState.SUB_CHAPTERS else flow.sub_sub_chapters
            if not nodes:
                typer.echo("Nothing with decisions here.")
                if not flow.back():
                    return False
                continue
            for i, node in enumerate(nodes, start=1):
                typer.echo(f"  {i}. {node.title}")
            index = _pick("Select", len(nodes))
            if index is None:
                if not flow.back():
                    return False
            elif flow.state == FlowState.SUB_CHAPTERS:
                flow.select_sub_chapter(nodes[index])
            else:
                flow.select_sub_sub_chapter(nodes[index])
            continue
        if flow.state == FlowState.HISTORY:
            typer.echo("History: ask the following to know the medical history of the patient")
            lines = flow.history
        elif flow.state == FlowState.EXAMINATION_ACTIONS:
            typer.echo("Examination: carry out the following")
            lines = flow.examination_actions
        else:
            typer.echo("Findings: answer for each finding on examination")
            for i, finding in enumerate(flow.findings):
                flow.answer(i, "yes" if typer.confirm(f"  {finding}?", default=False) else "no")
            flow.advance()
            continue
        for i, line in enumerate(lines, start=1):
            typer.echo(f"  {i}. {line}")
        if typer.confirm("Continue?", default=True):
            flow.advance()
        else:
            flow.back()
    return True


@app.command("decide")
def decide_cmd(
    chapter: Optional[int] = typer.Argument(None, help="Chapter number from the list (omit to list)"),
    path: Optional[Path] = typer.Argument(None, help="Book JSON file (default: config book_path)"),
    submit: bool = typer.Option(False, "--submit", help="Submit the decision to the API"),
    reason: Optional[str] = typer.Option(None, "--reason", help=f"One of: {', '.join(REASONS)}"),
    patient_id: Optional[str] = typer.Option(None, "--patient-id", help="Required for Patient Care"),
    patient_age: Optional[str] = typer.Option(None, "--patient-age", help="Required for Patient Care"),
    resume: bool = typer.Option(True, "--resume/--restart", help="Resume a saved flow for this chapter"),
) -> None:
    """Run the clinical decision maker for one chapter."""
    try:
        book = open_book(path)
    except ValueError as e:
        _fail(str(e))
    chapters = decision_chapters(book)
    if chapter is None:
        for i, c in enumerate(chapters, start=1):
            ages = age_range(c.chapter)
            typer.echo(f"{i}. {c.chapter}" + (f"  [{ages}]" if ages else ""))
        return
    if not 1 <= chapter <= len(chapters):
        _fail(f"Chapter {chapter} out of range (1-{len(chapters)})")
    if submit and reason is None:
        _fail(f"--reason is required with --submit ({', '.join(REASONS)})")

    store = JsonFileStore(get_state_path())
    selected = chapters[chapter - 1]
    flow = load_flow(store, selected) if resume else DecisionFlow(selected)
    if not _run_flow(flow, store):
        discard_flow(store)
        return
    save_flow(store, flow)

    selections = flow.result()
    typer.echo("")
    typer.echo("Possible diagnoses based on your findings:")
    if not selections.matching_diagnoses:
        typer.echo("  (none)")
    for i, case in enumerate(selections.matching_diagnoses, start=1):
        _print_case(i, case)

    if submit:
        cfg = load_config()
        try:
            sink = HttpDecisionSink(cfg.get("api_base_url") or "", token=get_api_token(cfg))
            submit_decision(sink, selections, reason, patient_id=patient_id, patient_age=patient_age)
        except (ValueError, SubmissionError) as e:
            _fail(str(e))
        typer.echo("Decision submitted successfully")
    discard_flow(store)


@app.command("quiz-score")
def quiz_score_cmd(
    assessment: Path = typer.Argument(..., help="Assessment JSON (with quizzes[].questions[])"),
    answers: List[str] = typer.Argument(None, help="Answers as QUESTION=OPTION, 0-based, e.g. 0=2"),
) -> None:
    """Score a set of answers against an assessment's correct options."""
    try:
        with open(assessment, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _fail(f"Cannot read assessment: {e}")
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        data = data["data"]
    questions = questions_from_assessment(data)
    selected = {}
    for pair in answers or []:
        q, _, opt = pair.partition("=")
        try:
            selected[int(q)] = int(opt)
        except ValueError:
            _fail(f"Bad answer '{pair}'; expected QUESTION=OPTION")
    typer.echo(f"Score: {score(questions, selected):.1f}% ({len(selected)} of {len(questions)} answered)")


def main() -> None:
    """Entry point for the standing-orders console script."""
    app()


if __name__ == "__main__":
    main()
