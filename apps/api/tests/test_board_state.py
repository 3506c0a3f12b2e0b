from __future__ import annotations

import pytest

from taskhive import board_state
from taskhive.errors import NotFoundError, ValidationError


def _board(*specs: tuple[str, list[str]]) -> tuple[list[dict], list[str]]:
  cols = [{"id": cid, "title": cid.upper(), "order": idx, "taskIds": list(tids)} for idx, (cid, tids) in enumerate(specs)]
  return cols, [c["id"] for c in cols]


def test_default_columns() -> None:
  cols, order = board_state.default_columns()
  assert [c["title"] for c in cols] == ["To Do", "In Progress", "Done"]
  assert order == [c["id"] for c in cols]
  assert len(set(order)) == 3
  assert board_state.invariant_errors(cols, order) == []


def test_clean_title_rejects_blank() -> None:
  assert board_state.clean_title("  Review ", what="Column") == "Review"
  with pytest.raises(ValidationError, match="Column title is required"):
    board_state.clean_title("   ", what="Column")
  with pytest.raises(ValidationError):
    board_state.clean_title(None, what="Task")


def test_add_column_appends_and_keeps_input_untouched() -> None:
  cols, order = _board(("a", []), ("b", []))
  new_cols, new_order, col = board_state.add_column(cols, order, "Review")
  assert col["title"] == "Review"
  assert col["order"] == 2
  assert col["taskIds"] == []
  assert new_order == ["a", "b", col["id"]]
  assert order == ["a", "b"]
  assert len(cols) == 2


def test_reorder_requires_permutation() -> None:
  cols, order = _board(("a", []), ("b", []), ("c", []))

  new_cols, new_order = board_state.reorder_columns(cols, ["c", "a", "b"])
  assert new_order == ["c", "a", "b"]
  assert {c["id"]: c["order"] for c in new_cols} == {"c": 0, "a": 1, "b": 2}

  with pytest.raises(ValidationError, match="duplicate"):
    board_state.reorder_columns(cols, ["a", "a", "b"])
  with pytest.raises(ValidationError, match="Invalid column IDs"):
    board_state.reorder_columns(cols, ["a", "b", "zzz"])
  with pytest.raises(ValidationError, match="every column"):
    board_state.reorder_columns(cols, ["a", "b"])
  assert [c["order"] for c in cols] == [0, 1, 2]


def test_remove_column_renumbers_order() -> None:
  cols, order = _board(("a", ["t1"]), ("b", ["t2", "t3"]), ("c", []))
  new_cols, new_order, removed = board_state.remove_column(cols, order, "b")
  assert removed["taskIds"] == ["t2", "t3"]
  assert new_order == ["a", "c"]
  assert {c["id"]: c["order"] for c in new_cols} == {"a": 0, "c": 1}

  with pytest.raises(NotFoundError):
    board_state.remove_column(cols, order, "nope")


def test_move_within_column() -> None:
  cols, _ = _board(("a", ["t1", "t2", "t3"]))
  new_cols, source, idx = board_state.move_task(cols, "t1", "a", 2)
  assert source == "a"
  assert idx == 2
  assert new_cols[0]["taskIds"] == ["t2", "t3", "t1"]


def test_move_across_columns() -> None:
  cols, _ = _board(("a", ["t1", "t2"]), ("b", ["t3"]))
  new_cols, source, idx = board_state.move_task(cols, "t2", "b", 0)
  assert source == "a"
  assert idx == 0
  assert new_cols[0]["taskIds"] == ["t1"]
  assert new_cols[1]["taskIds"] == ["t2", "t3"]
  assert cols[0]["taskIds"] == ["t1", "t2"]


def test_move_clamps_index() -> None:
  cols, _ = _board(("a", ["t1"]), ("b", ["t2", "t3"]))
  new_cols, _, idx = board_state.move_task(cols, "t1", "b", 99)
  assert idx == 2
  assert new_cols[1]["taskIds"] == ["t2", "t3", "t1"]

  new_cols, _, idx = board_state.move_task(cols, "t1", "b", -5)
  assert idx == 0
  assert new_cols[1]["taskIds"] == ["t1", "t2", "t3"]


def test_move_to_current_position_is_a_noop() -> None:
  cols, _ = _board(("a", ["t1", "t2"]), ("b", []))
  new_cols, source, idx = board_state.move_task(cols, "t2", "a", 1)
  assert (source, idx) == ("a", 1)
  assert new_cols == cols


def test_move_removes_by_id_even_when_duplicated() -> None:
  cols, order = _board(("a", ["t1", "t2"]), ("b", ["t1"]))
  assert board_state.invariant_errors(cols, order) == ["task t1 appears more than once"]

  new_cols, source, _ = board_state.move_task(cols, "t1", "b", 0)
  assert source == "a"
  assert new_cols[0]["taskIds"] == ["t2"]
  assert new_cols[1]["taskIds"] == ["t1"]
  assert board_state.invariant_errors(new_cols, order) == []


def test_move_task_missing_from_every_column_is_inserted() -> None:
  cols, _ = _board(("a", ["t1"]))
  new_cols, source, idx = board_state.move_task(cols, "ghost", "a", 0)
  assert source is None
  assert idx == 0
  assert new_cols[0]["taskIds"] == ["ghost", "t1"]


def test_move_to_unknown_column() -> None:
  cols, _ = _board(("a", ["t1"]))
  with pytest.raises(NotFoundError, match="Column not found"):
    board_state.move_task(cols, "t1", "nope", 0)


def test_locate_and_positions() -> None:
  cols, _ = _board(("a", ["t1", "t2"]), ("b", ["t3"]))
  assert board_state.locate_task(cols, "t2") == ("a", 1)
  assert board_state.locate_task(cols, "zz") is None
  assert board_state.positions(cols) == {"t1": ("a", 0), "t2": ("a", 1), "t3": ("b", 0)}
  assert board_state.positions(cols, {"b"}) == {"t3": ("b", 0)}


def test_invariant_errors_flags_bad_column_order() -> None:
  cols, _ = _board(("a", []), ("b", []))
  assert board_state.invariant_errors(cols, ["a"]) == ["columnOrder is not a permutation of column ids"]
  assert board_state.invariant_errors(cols, ["a", "a"]) == ["columnOrder is not a permutation of column ids"]
