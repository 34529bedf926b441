"""Tests for memory components, co-regulators, hierarchies and synchronization."""

from datetime import date
from decimal import Decimal

import pytest

from moma_kernel.domain.category import create_category
from moma_kernel.domain.memory import (
    MemoryRecord,
    Synchronization,
    create_co_regulator,
    create_hierarchy,
    create_memory_component,
    hierarchy_from_complexification,
    verify_synchronization,
)
from moma_kernel.domain.objects import CategoryObject
from moma_kernel.domain.pattern import create_pattern

D0 = date(2024, 1, 1)
D1 = date(2024, 1, 2)
D2 = date(2024, 1, 3)


class TestMemoryComponent:

    def test_store_returns_new_version(self):
        memory = create_memory_component(3, "0.1")
        stored = memory.store("loan_pattern", D0)
        assert memory.records == ()
        assert stored.version == 1
        assert stored.previous is memory
        assert stored.multiplicity("loan_pattern") == 1

    def test_multiplicity(self):
        memory = create_memory_component(5, "0.1").store("p", D0).store("p", D1).store("q", D1)
        assert memory.multiplicity("p") == 2
        assert len(memory.retrieve("p")) == 2

    def test_capacity_evicts_oldest(self):
        memory = create_memory_component(2, "0")
        for payload in ("a", "b", "c"):
            memory = memory.store(payload, D0)
        assert [r.payload for r in memory.records] == ["b", "c"]

    def test_strength_decays_daily(self):
        record = MemoryRecord("p", D0)
        assert record.strength_at(D2, Decimal("0.5")) == Decimal("0.25")
        assert record.strength_at(D0, Decimal("0.5")) == Decimal("1")

    def test_forget_below(self):
        memory = create_memory_component(5, "0.5").store("old", D0).store("new", D2)
        kept = memory.forget_below("0.5", D2)
        assert [r.payload for r in kept.records] == ["new"]

    def test_consolidate_into_long_term(self):
        short = create_memory_component(5, "0.5").store("old", D0).store("new", D2)
        long_term = create_memory_component(10, "0")
        merged = short.consolidate(long_term, "0.5", D2)
        assert [r.payload for r in merged.records] == ["new"]
        assert merged.previous is long_term

    def test_consolidate_nothing_strong(self):
        short = create_memory_component(5, "1").store("old", D0)
        long_term = create_memory_component(10, "0")
        assert short.consolidate(long_term, "0.5", D2) is long_term

    def test_history_chain(self):
        memory = create_memory_component(5, "0.1").store("a", D0).store("b", D1)
        assert [m.version for m in memory.history()] == [2, 1, 0]

    def test_invalid_parameters(self):
        with pytest.raises(ValueError):
            create_memory_component(0, "0.1")
        with pytest.raises(ValueError):
            create_memory_component(3, "1.5")


class TestCoRegulator:

    def test_update_decays_then_adds(self):
        reg = create_co_regulator("0.5", "0.5")
        first = reg.update_landscape({"liquidity": 1})
        second = first.update_landscape({"credit": "0.3"})
        assert second.activation("liquidity") == Decimal("0.5")
        assert second.activation("credit") == Decimal("0.3")
        assert second.version == 2
        assert second.previous is first
        assert reg.landscape == {}

    def test_active_keys(self):
        reg = create_co_regulator("0.5", "0").update_landscape({"a": "0.7", "b": "0.2"})
        assert reg.active() == frozenset({"a"})

    def test_unknown_key_inactive(self):
        assert create_co_regulator("0.5", "0.1").activation("missing") == 0


class TestHierarchy:

    def test_complexity_levels(self):
        a, b = CategoryObject("A"), CategoryObject("B")
        hierarchy = create_hierarchy({0: [a], 1: [b]})
        assert hierarchy.complexity(b) == 1
        assert hierarchy.max_level == 1

    def test_unknown_object(self):
        with pytest.raises(KeyError):
            create_hierarchy({0: []}).complexity(CategoryObject("Z"))

    def test_add_binding_places_higher_object(self):
        a, top = CategoryObject("A"), CategoryObject("Top")
        hierarchy = create_hierarchy({0: [a]}).add_binding(a, top)
        assert hierarchy.complexity(top) == 1
        assert hierarchy.bindings[top] == (a,)

    def test_from_complexification(self, open_chain_category):
        first = create_pattern(open_chain_category, ["A", "B"])
        hierarchy = hierarchy_from_complexification(open_chain_category, [first])
        binding = next(iter(hierarchy.levels[1]))
        assert binding.id == "colimit_A_B"
        assert hierarchy.complexity(open_chain_category.resolve("C")) == 0
        assert {o.id for o in hierarchy.bindings[binding]} == {"A", "B"}


class TestSynchronization:

    def test_same_category(self, open_chain_category):
        sync = Synchronization(
            create_pattern(open_chain_category, ["A", "B"]),
            create_pattern(open_chain_category, ["B", "C"]),
        )
        assert verify_synchronization(sync)
        assert {o.id for o in sync.shared_objects} == {"B"}

    def test_different_categories(self, open_chain_category):
        other = create_category(["X"])
        sync = Synchronization(
            create_pattern(open_chain_category, ["A"]),
            create_pattern(other, ["X"]),
        )
        assert not verify_synchronization(sync)
