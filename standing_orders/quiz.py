"""
Quiz scoring and assessment progress.

Each question has four options (option1..option4) and a correctOption that names the
right one, either by key ("option2") or by the option text. Selected answers are option
indices 0..3 keyed by question index.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from standing_orders.models import QuizQuestion, QuizState
from standing_orders.storage import KeyValueStore, clear_state, load_state, save_state

log = logging.getLogger(__name__)

OPTION_KEYS = ("option1", "option2", "option3", "option4")
QUIZ_STATE_KEY = "quiz_state"


def option_key(index: int) -> str:
    """Wire name of an option index; anything outside 0..3 maps to option1."""
    return OPTION_KEYS[index] if 0 <= index < len(OPTION_KEYS) else OPTION_KEYS[0]


def is_correct(question: QuizQuestion, option_index: int) -> bool:
    if not 0 <= option_index < len(OPTION_KEYS):
        return False
    expected = question.correct_option.strip()
    if not expected:
        return False
    return expected in (OPTION_KEYS[option_index], question.options[option_index].strip())


def score(questions: List[QuizQuestion], answers: Mapping[int, int]) -> float:
    """
    Percentage of all questions answered correctly (0..100). Unanswered questions count
    as wrong; an empty quiz scores 0.
    """
    if not questions:
        return 0.0
    correct = sum(
        1
        for q_index, opt_index in answers.items()
        if 0 <= q_index < len(questions) and is_correct(questions[q_index], opt_index)
    )
    return correct / len(questions) * 100


def questions_from_assessment(assessment: Mapping[str, Any]) -> List[QuizQuestion]:
    """All questions of an assessment, quiz by quiz. Accepts a single quiz object or a list."""
    quizzes = assessment.get("quizzes") or []
    if isinstance(quizzes, Mapping):
        quizzes = [quizzes]
    out: List[QuizQuestion] = []
    for quiz in quizzes:
        for q in quiz.get("questions") or []:
            out.append(QuizQuestion.model_validate(q))
    return out


def _first_quiz_id(assessment: Mapping[str, Any]) -> Any:
    quizzes = assessment.get("quizzes") or []
    if isinstance(quizzes, Mapping):
        return quizzes.get("id")
    return quizzes[0].get("id") if quizzes else None


class QuizSession:
    """
    Progress through one assessment. State is saved to the store after every change so
    an interrupted quiz resumes where it stopped, and removed once the quiz is finished.
    """

    def __init__(
        self,
        assessment: Mapping[str, Any],
        store: Optional[KeyValueStore] = None,
    ):
        self.assessment_id = assessment.get("id")
        self.quiz_id = _first_quiz_id(assessment)
        self.questions = questions_from_assessment(assessment)
        self.store = store
        self.state = load_state(store, QUIZ_STATE_KEY, QuizState) or QuizState()

    def _save(self) -> None:
        save_state(self.store, QUIZ_STATE_KEY, self.state)

    @property
    def current(self) -> Optional[QuizQuestion]:
        i = self.state.current_question_index
        return self.questions[i] if 0 <= i < len(self.questions) else None

    @property
    def has_answer(self) -> bool:
        return self.state.current_question_index in self.state.answers

    def select(self, option_index: int) -> Dict[str, Any]:
        """Answer the current question; returns the incremental submission payload for it."""
        if self.current is None:
            raise IndexError("No current question")
        if not 0 <= option_index < len(OPTION_KEYS):
            raise ValueError(f"Option index must be 0..3, got {option_index}")
        self.state.answers[self.state.current_question_index] = option_index
        self._save()
        return self.submission_payload([self.state.current_question_index], completed=False)

    def next(self) -> bool:
        if self.state.current_question_index < len(self.questions) - 1:
            self.state.current_question_index += 1
            self._save()
            return True
        return False

    def previous(self) -> bool:
        if self.state.current_question_index > 0:
            self.state.current_question_index -= 1
            self._save()
            return True
        return False

    def submission_payload(self, question_indices: Iterable[int], completed: bool) -> Dict[str, Any]:
        questions = [
            {
                "questionId": self.questions[i].id,
                "selectedOption": option_key(self.state.answers[i]),
            }
            for i in question_indices
            if i in self.state.answers and 0 <= i < len(self.questions)
        ]
        return {
            "id": self.assessment_id,
            "isCompleted": completed,
            "quizId": self.quiz_id,
            "submission": [{"quizId": self.quiz_id, "questions": questions}],
        }

    def score(self) -> float:
        return score(self.questions, self.state.answers)

    def finish(self) -> Dict[str, Any]:
        """Mark the quiz complete, drop saved progress, and return the final payload."""
        self.state.quiz_completed = True
        payload = self.submission_payload(sorted(self.state.answers), completed=True)
        clear_state(self.store, QUIZ_STATE_KEY)
        log.info("Quiz %s finished: %.1f%%", self.assessment_id, self.score())
        return payload
