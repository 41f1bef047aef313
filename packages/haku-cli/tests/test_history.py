from haku.core.history import FILE_HISTORY_LIMIT, id_from_route, record, record_route


def replay(ids, capacity=FILE_HISTORY_LIMIT):
    history = []
    for item_id in ids:
        history = record(history, item_id, capacity)
    return history


def test_revisit_moves_id_to_front() -> None:
    assert replay(["a", "b", "a", "c"]) == ["c", "a", "b"]


def test_capacity_keeps_most_recent() -> None:
    ids = [f"id{i}" for i in range(12)]

    history = replay(ids)

    assert len(history) == 10
    assert history == list(reversed(ids))[:10]


def test_record_is_pure_and_ignores_empty_ids() -> None:
    history = ["a", "b"]

    assert record(history, "") == ["a", "b"]
    assert record(history, None) == ["a", "b"]
    assert record(history, "c") == ["c", "a", "b"]
    assert history == ["a", "b"]


def test_ids_stay_unique() -> None:
    history = replay(["x", "y", "x", "y", "x"])
    assert history == ["x", "y"]


def test_id_from_route() -> None:
    assert id_from_route("/notes/ckx1abc") == "ckx1abc"
    assert id_from_route("/todos/0f8e-11aa/") == "0f8e-11aa"
    assert id_from_route("/todos/abc123/edit") == "abc123"
    assert id_from_route("/inbox") is None
    assert id_from_route("/notes/") is None


def test_record_route() -> None:
    history = record_route([], "/notes/n1")
    history = record_route(history, "/settings")
    history = record_route(history, "/todos/t1")

    assert history == ["t1", "n1"]
