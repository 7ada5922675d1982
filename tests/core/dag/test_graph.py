"""Tests for DependencyGraph."""

import pytest
from helpers import make_tasks

from stackweave.core.dag import DependencyGraph
from stackweave.core.errors import CycleDetected, ValidationError
from stackweave.core.types import Task


def layer_ids(layers):
    return [[t.id for t in layer] for layer in layers]


class TestLayers:
    """Tests for dependency layering."""

    def test_diamond_layers_regardless_of_declaration_order(self):
        """D requires B and C, both require A."""
        tasks = make_tasks(("d", ("b", "c")), ("b", ("a",)), ("c", ("a",)), "a")
        assert layer_ids(DependencyGraph(tasks).layers()) == [["a"], ["b", "c"], ["d"]]

    def test_independent_tasks_share_one_layer(self):
        graph = DependencyGraph(make_tasks("a", "b", "c"))
        assert layer_ids(graph.layers()) == [["a", "b", "c"]]

    def test_every_task_after_its_dependencies(self):
        tasks = make_tasks(
            ("e", ("d",)),
            ("d", ("b", "c")),
            ("c", ("a",)),
            "a",
            ("b", ("a",)),
            "f",
        )
        layers = DependencyGraph(tasks).layers()
        index = {t.id: i for i, layer in enumerate(layers) for t in layer}
        assert sorted(index) == ["a", "b", "c", "d", "e", "f"]
        for task in tasks:
            for dep in task.requires:
                assert index[dep] < index[task.id]

    def test_layer_keeps_declaration_order(self):
        graph = DependencyGraph(make_tasks("z", "m", "a"))
        assert layer_ids(graph.layers()) == [["z", "m", "a"]]

    def test_cycle_raises_with_both_ids(self):
        tasks = make_tasks(("a", ("b",)), ("b", ("a",)))
        with pytest.raises(CycleDetected) as exc_info:
            DependencyGraph(tasks).layers()
        assert exc_info.value.task_ids == ["a", "b"]
        assert "a" in str(exc_info.value)
        assert "b" in str(exc_info.value)

    def test_cycle_is_a_validation_error(self):
        tasks = make_tasks(("a", ("a",)))
        with pytest.raises(ValidationError):
            DependencyGraph(tasks).layers()

    def test_unknown_dependency_raises(self):
        tasks = make_tasks("a", ("b", ("zzz",)))
        with pytest.raises(ValidationError) as exc_info:
            DependencyGraph(tasks).layers()
        assert "zzz" in str(exc_info.value)
        assert not isinstance(exc_info.value, CycleDetected)

    def test_empty_graph_has_no_layers(self):
        assert DependencyGraph([]).layers() == []


class TestValidate:
    """Tests for structural validation."""

    def test_reports_duplicate_ids(self):
        errors = DependencyGraph([Task(id="a"), Task(id="a")]).validate()
        assert errors == ["Duplicate task id 'a'"]

    def test_reports_every_unknown_dependency(self):
        tasks = make_tasks(("a", ("x",)), ("b", ("y",)))
        errors = DependencyGraph(tasks).validate()
        assert len(errors) == 2
        assert "x" in errors[0]
        assert "y" in errors[1]

    def test_valid_graph_has_no_errors(self):
        assert DependencyGraph(make_tasks("a", ("b", ("a",)))).validate() == []

    def test_find_cycle(self):
        tasks = make_tasks("root", ("a", ("c", "root")), ("b", ("a",)), ("c", ("b",)))
        cycle = DependencyGraph(tasks).find_cycle()
        assert cycle is not None
        assert sorted(cycle) == ["a", "b", "c"]

    def test_find_cycle_none_for_dag(self):
        assert DependencyGraph(make_tasks("a", ("b", ("a",)))).find_cycle() is None


class TestOrdering:
    """Tests for topological order and the critical path."""

    def test_topological_order_breaks_ties_by_declaration(self):
        tasks = make_tasks("a", ("b", ("a",)), "c")
        order = [t.id for t in DependencyGraph(tasks).topological_order()]
        assert order == ["a", "b", "c"]

    def test_topological_order_dependencies_first(self):
        tasks = make_tasks(("c", ("b",)), ("b", ("a",)), "a")
        order = [t.id for t in DependencyGraph(tasks).topological_order()]
        assert order == ["a", "b", "c"]

    def test_critical_path_follows_costliest_chain(self):
        tasks = make_tasks("a", ("b", ("a",)), ("c", ("a",)), ("d", ("b", "c")), c=5)
        path, cost = DependencyGraph(tasks).critical_path()
        assert path == ["a", "c", "d"]
        assert cost == 7

    def test_dependents(self):
        graph = DependencyGraph(make_tasks("a", ("b", ("a",)), ("c", ("a",))))
        assert [t.id for t in graph.dependents("a")] == ["b", "c"]


def test_task_requires_deduplicated_in_order():
    """Duplicate requirements collapse, keeping first occurrence."""
    task = Task(id="x", requires=("b", "a", "b"))
    assert task.requires == ("b", "a")
    assert task.title == "x"
