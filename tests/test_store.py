import threading
from datetime import datetime, timedelta, timezone

import pytest

from kanban_api.errors import InvalidStatusError, TaskNotFoundError
from kanban_api.repositories import InMemoryTaskStore
from kanban_api.schemas import TaskCreate, TaskUpdate


def column(store, status):
    """Return titles of a column sorted by order."""
    items = [t for t in store.list() if t["status"] == status]
    return [t["title"] for t in sorted(items, key=lambda t: t["order"])]


def orders(store, status):
    return sorted(t["order"] for t in store.list() if t["status"] == status)


def create(store, *titles):
    return [store.create(TaskCreate(title=t)) for t in titles]


class TestCreate:
    def test_new_tasks_append_to_todo(self, store):
        a, b, c = create(store, "A", "B", "C")
        assert [a["order"], b["order"], c["order"]] == [1, 2, 3]
        assert {a["status"], b["status"], c["status"]} == {"todo"}
        assert a["created_at"] == a["updated_at"]
        assert len({a["id"], b["id"], c["id"]}) == 3

    def test_order_follows_max_even_with_gap(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.update(b["id"], TaskUpdate(status="doing"))
        assert orders(store, "todo") == [1, 3]
        (d,) = create(store, "D")
        assert d["order"] == 4

    def test_uses_injected_id_factory(self, clock):
        ids = iter(["first", "second"])
        s = InMemoryTaskStore(id_factory=lambda: next(ids), clock=clock)
        assert s.create(TaskCreate(title="x"))["id"] == "first"
        assert s.create(TaskCreate(title="y"))["id"] == "second"

    def test_returned_entities_are_copies(self, store):
        (a,) = create(store, "A")
        a["title"] = "mutated"
        store.list()[0]["order"] = 99
        fetched = store.get(a["id"])
        assert fetched["title"] == "A"
        assert fetched["order"] == 1


class TestGetAndList:
    def test_get_missing_raises(self, store):
        with pytest.raises(TaskNotFoundError) as exc_info:
            store.get("nope")
        assert exc_info.value.task_id == "nope"

    def test_list_is_idempotent(self, store):
        create(store, "A", "B", "C")
        assert store.list() == store.list()


class TestUpdate:
    def test_applies_only_provided_fields(self, store):
        a = store.create(TaskCreate(title="A", description="keep"))
        updated = store.update(a["id"], TaskUpdate(title="A2"))
        assert updated["title"] == "A2"
        assert updated["description"] == "keep"
        assert updated["status"] == "todo"
        assert updated["order"] == 1
        assert updated["created_at"] == a["created_at"]
        assert updated["updated_at"] > a["updated_at"]

    def test_explicit_null_clears_description(self, store):
        a = store.create(TaskCreate(title="A", description="gone"))
        updated = store.update(a["id"], TaskUpdate.model_validate({"description": None}))
        assert updated["description"] is None

    def test_status_change_appends_to_bottom_of_new_column(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.update(a["id"], TaskUpdate(status="done"))
        moved = store.update(c["id"], TaskUpdate(status="done"))
        assert moved["order"] == 2
        assert column(store, "done") == ["A", "C"]
        # source column keeps its gap until reindexed
        assert orders(store, "todo") == [2]

    def test_same_status_keeps_position(self, store):
        a, b = create(store, "A", "B")
        updated = store.update(a["id"], TaskUpdate(status="todo"))
        assert updated["order"] == 1

    def test_missing_id_leaves_state_unchanged(self, store):
        create(store, "A", "B")
        before = store.list()
        with pytest.raises(TaskNotFoundError):
            store.update("missing", TaskUpdate(title="x", status="done"))
        assert store.list() == before

    def test_unknown_status_rejected(self, store):
        (a,) = create(store, "A")
        before = store.list()
        with pytest.raises(InvalidStatusError):
            store.update(a["id"], TaskUpdate(title="x", status="archived"))
        assert store.list() == before


class TestDelete:
    def test_reindexes_former_column(self, store):
        a, b, c, d = create(store, "A", "B", "C", "D")
        store.delete(b["id"])
        assert column(store, "todo") == ["A", "C", "D"]
        assert orders(store, "todo") == [1, 2, 3]

    def test_touches_remaining_tasks_in_column(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.delete(a["id"])
        for t in store.list():
            assert t["updated_at"] > c["updated_at"]

    def test_closes_gap_left_by_status_change(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.update(b["id"], TaskUpdate(status="doing"))
        store.delete(a["id"])
        assert [t["order"] for t in store.list() if t["title"] == "C"] == [1]

    def test_other_columns_untouched(self, store):
        a, b = create(store, "A", "B")
        moved = store.reorder(b["id"], "done", 0)
        store.delete(a["id"])
        assert store.get(b["id"]) == moved

    def test_missing_id_raises(self, store):
        with pytest.raises(TaskNotFoundError):
            store.delete("missing")


class TestReorder:
    def test_move_to_other_column(self, store):
        a, b, c = create(store, "A", "B", "C")
        moved = store.reorder(b["id"], "doing", 0)
        assert moved["status"] == "doing"
        assert moved["order"] == 1
        assert {t["title"]: t["order"] for t in store.list() if t["status"] == "todo"} == {"A": 1, "C": 2}
        assert column(store, "doing") == ["B"]

    def test_move_within_column(self, store):
        a, b, c, d = create(store, "A", "B", "C", "D")
        store.reorder(d["id"], "todo", 1)
        assert column(store, "todo") == ["A", "D", "B", "C"]
        assert orders(store, "todo") == [1, 2, 3, 4]

    def test_move_down_within_column(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.reorder(a["id"], "todo", 2)
        assert column(store, "todo") == ["B", "C", "A"]

    def test_index_is_clamped(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.reorder(a["id"], "doing", 0)
        store.reorder(b["id"], "doing", 99)
        assert column(store, "doing") == ["A", "B"]
        store.reorder(c["id"], "doing", -5)
        assert column(store, "doing") == ["C", "A", "B"]
        assert orders(store, "doing") == [1, 2, 3]

    def test_destination_column_is_bulk_touched(self, store):
        a, b, c = create(store, "A", "B", "C")
        moved = store.reorder(c["id"], "todo", 0)
        for t in store.list():
            assert t["updated_at"] == moved["updated_at"]

    def test_normalizes_gapped_destination(self, store):
        a, b, c = create(store, "A", "B", "C")
        store.update(a["id"], TaskUpdate(status="done"))
        store.reorder(b["id"], "todo", 0)
        assert column(store, "todo") == ["B", "C"]
        assert orders(store, "todo") == [1, 2]

    def test_invalid_status_rejected(self, store):
        (a,) = create(store, "A")
        with pytest.raises(InvalidStatusError):
            store.reorder(a["id"], "archived", 0)

    def test_missing_id_raises(self, store):
        with pytest.raises(TaskNotFoundError):
            store.reorder("missing", "todo", 0)


class TestSeed:
    def test_normalizes_columns_on_start(self, clock):
        then = datetime(2024, 6, 1, tzinfo=timezone.utc)

        def task(task_id, status, order, minutes):
            ts = then + timedelta(minutes=minutes)
            return {
                "id": task_id,
                "title": task_id,
                "description": None,
                "status": status,
                "order": order,
                "created_at": ts,
                "updated_at": ts,
            }

        seed = [
            task("a", "todo", 1, 0),
            task("b", "todo", 5, 1),
            task("c", "doing", 0, 2),
            task("d", "doing", 0, 3),
        ]
        s = InMemoryTaskStore(seed, clock=clock)
        assert column(s, "todo") == ["a", "b"]
        assert column(s, "doing") == ["c", "d"]
        assert orders(s, "todo") == [1, 2]
        # already in place: not touched
        assert s.get("a")["updated_at"] == then
        assert s.get("b")["updated_at"] > then

    def test_seed_is_copied(self, clock):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        entity = {
            "id": "x",
            "title": "x",
            "description": None,
            "status": "todo",
            "order": 1,
            "created_at": now,
            "updated_at": now,
        }
        s = InMemoryTaskStore([entity], clock=clock)
        entity["title"] = "changed"
        assert s.get("x")["title"] == "x"

    def test_clean_start_does_not_read_clock(self, clock):
        start = clock.current
        InMemoryTaskStore(clock=clock)
        assert clock.current == start

        s = InMemoryTaskStore(
            [
                {
                    "id": "x",
                    "title": "x",
                    "description": None,
                    "status": "todo",
                    "order": 1,
                    "created_at": start,
                    "updated_at": start,
                }
            ],
            clock=clock,
        )
        assert clock.current == start
        assert s.get("x")["updated_at"] == start


class TestConcurrency:
    def test_concurrent_creates_keep_column_dense(self):
        s = InMemoryTaskStore()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            for i in range(10):
                s.create(TaskCreate(title=f"{n}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        tasks = s.list()
        assert len({t["id"] for t in tasks}) == 80
        assert orders(s, "todo") == list(range(1, 81))

    def test_concurrent_reorders_keep_columns_dense(self):
        s = InMemoryTaskStore()
        created = [s.create(TaskCreate(title=str(i))) for i in range(30)]

        def worker(offset):
            for i, t in enumerate(created[offset::3]):
                s.reorder(t["id"], ("todo", "doing", "done")[(i + offset) % 3], i)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for status in ("todo", "doing", "done"):
            got = orders(s, status)
            assert got == list(range(1, len(got) + 1))
