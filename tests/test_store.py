from __future__ import annotations

from typing import Any

import pytest

from minstorex import Action, Store, ValidationError, create_action, create_store, create_thunk


def _add(state: int, amount: int) -> int:
    return state + amount


def test_create_store_holds_initial_state() -> None:
    assert create_store(0).get_state() == 0
    assert create_store().get_state() is None
    assert create_store({"a": 1}).state == {"a": 1}


def test_stores_do_not_share_state_or_subscribers() -> None:
    first = create_store(0)
    second = create_store(0)
    seen: list[Any] = []
    first.subscribe(lambda s, a: seen.append(s))

    second.dispatch(create_action("inc", _add), 1)

    assert first.get_state() == 0
    assert second.get_state() == 1
    assert seen == []
    assert isinstance(first, Store)


def test_counter_scenario() -> None:
    store = create_store(0)
    inc = {"type": "inc", "func": lambda s, p: s + p}

    store.dispatch(inc, 5)
    assert store.get_state() == 5

    store.dispatch(inc, 3)
    assert store.get_state() == 8


def test_sync_dispatch_returns_none() -> None:
    store = create_store(0)
    assert store.dispatch(create_action("inc", _add), 1) is None


def test_state_is_replaced_by_func_result() -> None:
    prior = {"items": (1,)}
    store = create_store(prior)
    append = create_action("append", lambda s, p: {"items": s["items"] + (p,)})

    store.dispatch(append, 2)

    assert store.get_state() == {"items": (1, 2)}
    assert prior == {"items": (1,)}


def test_subscribers_receive_copied_action_in_registration_order() -> None:
    store = create_store(0)
    inc = create_action("inc", _add)
    payload = object()
    calls: list[tuple[str, Any, Any]] = []
    store.subscribe(lambda s, a: calls.append(("first", s, a)))
    store.subscribe(lambda s, a: calls.append(("second", s, a)))

    store.dispatch(create_action("keep", lambda s, p: s), payload)

    assert [name for name, _, _ in calls] == ["first", "second"]
    for _, state, action in calls:
        assert state == 0
        assert action.payload is payload
        assert action.type == "keep"
    assert calls[0][2] is calls[1][2]

    calls.clear()
    store.dispatch(inc, 4)
    assert calls[0][2] is not inc
    assert inc.payload is None
    assert calls[0][1] == 4


def test_dict_action_is_not_mutated() -> None:
    store = create_store(0)
    raw = {"type": "inc", "func": _add}
    seen: list[Any] = []
    store.subscribe(lambda s, a: seen.append(a))

    store.dispatch(raw, 2)

    assert raw == {"type": "inc", "func": _add}
    assert isinstance(seen[0], Action)
    assert seen[0].payload == 2


def test_log_scenario_with_unsubscribe() -> None:
    store = create_store(0)
    inc = create_action("inc", _add)
    log: list[tuple[int, str]] = []
    unsub = store.subscribe(lambda s, a: log.append((s, a.type)))

    store.dispatch(inc, 1)
    store.dispatch(inc, 1)
    assert log == [(1, "inc"), (2, "inc")]

    unsub()
    store.dispatch(inc, 1)
    assert log == [(1, "inc"), (2, "inc")]
    assert store.get_state() == 3


def test_unsubscribe_twice_removes_only_one_registration() -> None:
    store = create_store(0)
    calls: list[int] = []

    def listener(state: int, action: Action[Any]) -> None:
        calls.append(state)

    unsub_first = store.subscribe(listener)
    store.subscribe(listener)

    store.dispatch(create_action("inc", _add), 1)
    assert calls == [1, 1]

    unsub_first()
    unsub_first()
    store.dispatch(create_action("inc", _add), 1)
    assert calls == [1, 1, 2]


def test_unsubscribe_removes_first_matching_registration() -> None:
    store = create_store(0)
    order: list[str] = []

    def listener(state: int, action: Action[Any]) -> None:
        order.append("listener")

    store.subscribe(listener)
    store.subscribe(lambda s, a: order.append("other"))
    unsub_second = store.subscribe(listener)

    unsub_second()
    store.dispatch(create_action("inc", _add), 1)

    # the first listener slot is removed, the later duplicate stays
    assert order == ["other", "listener"]


def test_subscribe_rejects_non_callable() -> None:
    store = create_store(0)
    with pytest.raises(ValidationError, match="subscriber must be a function"):
        store.subscribe("not callable")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "action",
    [
        {"type": "x"},
        {"type": "x", "func": 42},
        Action("x", None),  # type: ignore[arg-type]
        object(),
    ],
)
def test_dispatch_rejects_missing_func(action: Any) -> None:
    store = create_store(7)
    calls: list[Any] = []
    store.subscribe(lambda s, a: calls.append(s))

    with pytest.raises(ValidationError, match="action.func must be a function") as exc_info:
        store.dispatch(action, 1)

    assert exc_info.value.field == "func"
    assert store.get_state() == 7
    assert calls == []


@pytest.mark.parametrize("bad_type", [1, None, b"inc"])
def test_dispatch_rejects_non_string_type(bad_type: Any) -> None:
    store = create_store(7)
    calls: list[Any] = []
    store.subscribe(lambda s, a: calls.append(s))

    with pytest.raises(ValidationError, match="action.type must be a string"):
        store.dispatch({"type": bad_type, "func": _add}, 1)

    assert store.get_state() == 7
    assert calls == []


def test_func_error_propagates_and_keeps_state() -> None:
    store = create_store(1)
    calls: list[Any] = []
    store.subscribe(lambda s, a: calls.append(s))

    def boom(state: int, payload: Any) -> int:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        store.dispatch(create_action("boom", boom), None)

    assert store.get_state() == 1
    assert calls == []


def test_subscriber_error_stops_notification_after_state_update() -> None:
    store = create_store(0)
    calls: list[str] = []

    def failing(state: int, action: Action[Any]) -> None:
        calls.append("failing")
        raise ValueError("subscriber failed")

    store.subscribe(lambda s, a: calls.append("before"))
    store.subscribe(failing)
    store.subscribe(lambda s, a: calls.append("after"))

    with pytest.raises(ValueError, match="subscriber failed"):
        store.dispatch(create_action("inc", _add), 2)

    assert calls == ["before", "failing"]
    assert store.get_state() == 2


def test_get_state_inside_func_sees_prior_state() -> None:
    store = create_store(1)
    observed: list[int] = []

    def peek(state: int, payload: int) -> int:
        observed.append(store.get_state())
        return state + payload

    store.dispatch(create_action("peek", peek), 1)

    assert observed == [1]
    assert store.get_state() == 2


def test_reentrant_dispatch_from_subscriber() -> None:
    store = create_store(0)
    inc = create_action("inc", _add)
    seen: list[int] = []

    def bump_once(state: int, action: Action[Any]) -> None:
        seen.append(state)
        if state == 1:
            store.dispatch(inc, 10)

    store.subscribe(bump_once)
    store.dispatch(inc, 1)

    assert seen == [1, 11]
    assert store.get_state() == 11


def test_subscriber_added_during_notification_runs_from_next_dispatch() -> None:
    store = create_store(0)
    inc = create_action("inc", _add)
    late: list[int] = []
    added: list[bool] = []

    def add_late(state: int, action: Action[Any]) -> None:
        if not added:
            added.append(True)
            store.subscribe(lambda s, a: late.append(s))

    store.subscribe(add_late)
    store.dispatch(inc, 1)
    assert late == []

    store.dispatch(inc, 1)
    assert late == [2]


class TestThunk:
    def test_thunk_returns_func_result_without_touching_state(self) -> None:
        store = create_store(5)
        calls: list[Any] = []
        store.subscribe(lambda s, a: calls.append(s))
        received: list[Any] = []
        marker = object()

        def run(state: int, payload: str, track: Any) -> object:
            received.append((state, payload, callable(track)))
            return marker

        result = store.dispatch(create_thunk("load", run), "user-1")

        assert result is marker
        assert received == [(5, "user-1", True)]
        assert store.get_state() == 5
        assert calls == []

    def test_thunk_with_provenance(self) -> None:
        store = create_store(0)
        seen: list[Action[Any]] = []
        store.subscribe(lambda s, a: seen.append(a))
        outer = {
            "type": "outer",
            "thunk": True,
            "func": lambda s, p, track: track({"type": "inner", "func": lambda s2, p2: s2 + p2}, 1),
        }

        result = store.dispatch(outer, None)

        assert result is None
        assert store.get_state() == 1
        assert len(seen) == 1
        assert seen[0].type == "inner"
        assert seen[0].by is not None
        assert seen[0].by.type == "outer"
        assert seen[0].by.thunk is True

    def test_track_stamps_copied_outer_action(self) -> None:
        store = create_store(0)
        seen: list[Action[Any]] = []
        store.subscribe(lambda s, a: seen.append(a))
        inner = create_action("inner", _add)

        def run(state: int, payload: int, track: Any) -> None:
            track(inner, payload)
            track(inner, payload * 2)

        outer = create_thunk("outer", run)
        store.dispatch(outer, 3)

        assert store.get_state() == 9
        assert [a.payload for a in seen] == [3, 6]
        assert seen[0].by is seen[1].by
        assert seen[0].by is not outer
        assert seen[0].by.payload == 3
        assert outer.payload is None
        assert inner.by is None

    def test_nested_thunks_build_a_chain(self) -> None:
        store = create_store(0)
        seen: list[Action[Any]] = []
        store.subscribe(lambda s, a: seen.append(a))
        inc = create_action("inc", _add)
        child = create_thunk("child", lambda s, p, track: track(inc, p))
        parent = create_thunk("parent", lambda s, p, track: track(child, p))

        store.dispatch(parent, 2)

        assert store.get_state() == 2
        assert [a.type for a in seen[0].lineage()] == ["inc", "child", "parent"]
        assert seen[0].root.type == "parent"

    def test_track_validates_inner_action(self) -> None:
        store = create_store(0)

        def run(state: int, payload: Any, track: Any) -> None:
            track({"type": 3, "func": _add}, 1)

        with pytest.raises(ValidationError, match="action.type must be a string"):
            store.dispatch(create_thunk("outer", run), None)

        assert store.get_state() == 0

    def test_deferred_track_still_dispatches(self) -> None:
        store = create_store(0)
        seen: list[Action[Any]] = []
        store.subscribe(lambda s, a: seen.append(a))
        inc = create_action("inc", _add)

        def run(state: int, payload: int, track: Any) -> Any:
            return lambda: track(inc, payload)

        later = store.dispatch(create_thunk("defer", run), 4)
        assert store.get_state() == 0

        later()
        assert store.get_state() == 4
        assert seen[0].by is not None
        assert seen[0].by.type == "defer"

    def test_thunk_reads_current_state(self) -> None:
        store = create_store(10)
        reads: list[int] = []

        def run(state: int, payload: Any, track: Any) -> None:
            reads.append(state)
            track(create_action("inc", _add), 1)
            reads.append(store.get_state())

        store.dispatch(create_thunk("read", run), None)

        assert reads == [10, 11]


def test_dict_action_extra_keys_reach_subscribers() -> None:
    store = create_store(0)
    seen: list[Action[Any]] = []
    store.subscribe(lambda s, a: seen.append(a))
    meta = {"source": "ui"}

    store.dispatch({"type": "inc", "func": _add, "meta": meta}, 1)

    assert seen[0].meta is meta
    assert seen[0].to_dict()["meta"] is meta
    with pytest.raises(AttributeError):
        seen[0].missing
