"""Tests for the handler registry and dispatch table."""

import threading

import pytest

from towd.core.interaction import InteractionKind
from towd.core.registry import DispatchTable, Registry


async def handler_a(session, interaction):
    pass


async def handler_b(session, interaction):
    pass


class TestRegistry:
    def test_get_returns_last_write(self):
        registry = Registry()
        registry.add("x", handler_a)
        registry.add("x", handler_b)
        assert registry.get("x") is handler_b

    def test_remove_then_get_is_absent(self):
        registry = Registry()
        registry.add("x", handler_a)
        registry.remove("x")
        assert registry.get("x") is None
        assert "x" not in registry

    def test_remove_missing_is_noop(self):
        registry = Registry()
        registry.remove("nope")
        assert len(registry) == 0

    def test_sequence_of_operations(self):
        registry = Registry()
        expected = {}
        ops = [("add", "a", handler_a), ("add", "b", handler_b), ("remove", "a", None), ("add", "c", handler_a),
               ("add", "a", handler_b), ("remove", "c", None), ("remove", "zzz", None)]
        for op, identifier, handler in ops:
            if op == "add":
                registry.add(identifier, handler)
                expected[identifier] = handler
            else:
                registry.remove(identifier)
                expected.pop(identifier, None)

        assert registry.snapshot() == expected
        for identifier in ("a", "b", "c", "zzz"):
            assert registry.get(identifier) is expected.get(identifier)

    def test_iterate_walks_a_snapshot(self):
        registry = Registry()
        registry.add("a", handler_a)
        registry.add("b", handler_b)
        seen = []

        def visit(identifier, handler):
            # Mutating during iteration must not disturb the walk.
            registry.remove("b")
            seen.append(identifier)

        registry.iterate(visit)
        assert seen == ["a", "b"]
        assert "b" not in registry

    def test_concurrent_add_remove_same_id(self):
        registry = Registry()
        barrier = threading.Barrier(2)

        def adder():
            barrier.wait()
            for _ in range(2000):
                registry.add("x", handler_a)

        def remover():
            barrier.wait()
            for _ in range(2000):
                registry.remove("x")

        threads = [threading.Thread(target=adder), threading.Thread(target=remover)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert registry.get("x") in (None, handler_a)
        assert registry.snapshot() in ({}, {"x": handler_a})

    def test_concurrent_distinct_ids(self):
        registry = Registry()

        def add_range(start):
            for i in range(start, start + 500):
                registry.add(f"id-{i}", handler_a)

        threads = [threading.Thread(target=add_range, args=(n * 500,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(registry) == 2000


class TestDispatchTable:
    @pytest.mark.parametrize(
        "kind,attr",
        [
            (InteractionKind.COMMAND, "commands"),
            (InteractionKind.COMPONENT, "components"),
            (InteractionKind.MODAL, "modals"),
        ],
    )
    def test_for_kind(self, kind, attr):
        table = DispatchTable()
        assert table.for_kind(kind) is getattr(table, attr)

    def test_ids_with_suffix_ignores_commands(self):
        table = DispatchTable()
        table.commands.add("ping-f1", handler_a)
        table.components.add("yes-f1", handler_a)
        table.components.add("yes-f2", handler_a)
        table.modals.add("event-form-f1", handler_b)

        assert sorted(table.ids_with_suffix("-f1")) == ["event-form-f1", "yes-f1"]
