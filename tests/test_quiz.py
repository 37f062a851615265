import pytest

from standing_orders.models import QuizQuestion
from standing_orders.quiz import (
    QUIZ_STATE_KEY,
    QuizSession,
    is_correct,
    option_key,
    questions_from_assessment,
    score,
)
from standing_orders.storage import MemoryStore


def _question(qid, correct, options=("a", "b", "c", "d")):
    return {
        "id": qid,
        "question": f"Question {qid}",
        "option1": options[0],
        "option2": options[1],
        "option3": options[2],
        "option4": options[3],
        "correctOption": correct,
    }


@pytest.fixture
def assessment():
    return {
        "id": 40,
        "quizzes": [
            {
                "id": 5,
                "questions": [
                    _question(1, "option2"),
                    _question(2, "option1"),
                    _question(3, "Paracetamol", options=("Ibuprofen", "Aspirin", "Paracetamol", "Codeine")),
                    _question(4, "option4"),
                ],
            }
        ],
    }


@pytest.fixture
def questions(assessment):
    return questions_from_assessment(assessment)


class TestScore:
    def test_two_of_four_correct(self, questions):
        assert score(questions, {0: 1, 2: 2}) == 50.0

    def test_wrong_answers_and_unanswered(self, questions):
        assert score(questions, {0: 0, 1: 0}) == 25.0
        assert score(questions, {}) == 0.0

    def test_all_correct(self, questions):
        assert score(questions, {0: 1, 1: 0, 2: 2, 3: 3}) == 100.0

    def test_empty_quiz(self):
        assert score([], {0: 1}) == 0.0

    def test_out_of_range_answers_ignored(self, questions):
        assert score(questions, {9: 1, 0: 7}) == 0.0


def test_option_key():
    assert [option_key(i) for i in range(4)] == ["option1", "option2", "option3", "option4"]
    assert option_key(4) == "option1"
    assert option_key(-1) == "option1"


def test_correct_option_by_text_or_key():
    q = QuizQuestion.model_validate(_question(1, " Aspirin ", options=("Ibuprofen", "Aspirin", "x", "y")))
    assert is_correct(q, 1)
    assert not is_correct(q, 0)
    assert not is_correct(q, 4)


def test_blank_correct_option_never_matches():
    q = QuizQuestion.model_validate(_question(1, "", options=("a", "b", "c", "")))
    assert not is_correct(q, 3)
    assert score([q], {0: 3}) == 0.0


def test_single_quiz_object(assessment):
    assessment["quizzes"] = assessment["quizzes"][0]
    assert len(questions_from_assessment(assessment)) == 4


class TestQuizSession:
    def test_select_returns_incremental_payload(self, assessment):
        session = QuizSession(assessment, MemoryStore())
        payload = session.select(1)
        assert payload == {
            "id": 40,
            "isCompleted": False,
            "quizId": 5,
            "submission": [{"quizId": 5, "questions": [{"questionId": 1, "selectedOption": "option2"}]}],
        }

    def test_progress_survives_restart(self, assessment):
        store = MemoryStore()
        session = QuizSession(assessment, store)
        session.select(1)
        assert session.next()
        session.select(3)
        resumed = QuizSession(assessment, store)
        assert resumed.state.current_question_index == 1
        assert resumed.state.answers == {0: 1, 1: 3}
        assert resumed.has_answer

    def test_navigation_bounds(self, assessment):
        session = QuizSession(assessment)
        assert not session.previous()
        for _ in range(3):
            assert session.next()
        assert not session.next()
        assert session.current.id == 4

    def test_select_validation(self, assessment):
        session = QuizSession(assessment)
        with pytest.raises(ValueError):
            session.select(4)

    def test_finish_clears_state(self, assessment):
        store = MemoryStore()
        session = QuizSession(assessment, store)
        session.select(1)
        session.next()
        session.next()
        session.select(2)
        payload = session.finish()
        assert payload["isCompleted"] is True
        assert payload["submission"][0]["questions"] == [
            {"questionId": 1, "selectedOption": "option2"},
            {"questionId": 3, "selectedOption": "option3"},
        ]
        assert session.score() == 50.0
        assert store.get(QUIZ_STATE_KEY) is None
