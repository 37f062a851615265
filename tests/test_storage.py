import json

from standing_orders.models import QuizState
from standing_orders.storage import (
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    clear_state,
    load_state,
    save_state,
)


class TestMemoryStore:
    def test_get_set_delete(self):
        store = MemoryStore()
        assert isinstance(store, KeyValueStore)
        assert store.get("k") is None
        store.set("k", "v")
        assert store.get("k") == "v"
        store.delete("k")
        store.delete("k")
        assert store.get("k") is None


class TestJsonFileStore:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "state" / "progress.json"
        store = JsonFileStore(path)
        store.set("a", "1")
        store.set("b", "2")
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1", "b": "2"}
        assert JsonFileStore(path).get("a") == "1"
        store.delete("a")
        assert store.get("a") is None

    def test_missing_file_reads_empty(self, tmp_path):
        assert JsonFileStore(tmp_path / "none.json").get("a") is None


class TestStateHelpers:
    def test_save_and_load_model(self):
        store = MemoryStore()
        assert save_state(store, "quiz", QuizState(current_question_index=2, answers={1: 3}))
        state = load_state(store, "quiz", QuizState)
        assert state.current_question_index == 2
        assert state.answers == {1: 3}

    def test_no_store_is_a_no_op(self):
        assert save_state(None, "quiz", QuizState()) is False
        assert load_state(None, "quiz", QuizState) is None
        clear_state(None, "quiz")

    def test_invalid_saved_value_is_ignored(self, caplog):
        store = MemoryStore({"quiz": "{broken"})
        assert load_state(store, "quiz", QuizState) is None
        assert "Error loading quiz" in caplog.text

    def test_unusable_file_is_logged_not_raised(self, tmp_path, caplog):
        path = tmp_path / "state.json"
        path.write_text("[1, 2]", encoding="utf-8")
        store = JsonFileStore(path)
        assert save_state(store, "quiz", QuizState()) is False
        assert load_state(store, "quiz", QuizState) is None
        clear_state(store, "quiz")
        assert "does not hold a JSON object" in caplog.text
