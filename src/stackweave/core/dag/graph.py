"""Dependency graph over tasks: validation, layering and ordering."""

from __future__ import annotations

import heapq
from collections.abc import Sequence
from graphlib import CycleError, TopologicalSorter

from stackweave.core.errors import CycleDetected, ValidationError
from stackweave.core.types import Task


class DependencyGraph:
    """Immutable view of a task list and its ``requires`` edges.

    Declaration order is preserved everywhere: within a layer, and as the
    tie-breaker of the topological order.

    Example:
        >>> graph = DependencyGraph([
        ...     Task(id="d", requires=("b", "c")),
        ...     Task(id="b", requires=("a",)),
        ...     Task(id="c", requires=("a",)),
        ...     Task(id="a"),
        ... ])
        >>> [[t.id for t in layer] for layer in graph.layers()]
        [['a'], ['b', 'c'], ['d']]
    """

    def __init__(self, tasks: Sequence[Task]) -> None:
        self._tasks = list(tasks)
        self._index = {t.id: i for i, t in enumerate(self._tasks)}
        self._by_id = {t.id: t for t in self._tasks}

    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks)

    def get(self, task_id: str) -> Task:
        return self._by_id[task_id]

    def dependents(self, task_id: str) -> list[Task]:
        return [t for t in self._tasks if task_id in t.requires]

    def validate(self) -> list[str]:
        """Structural problems: duplicate ids and unknown dependencies.

        Cycles are reported separately by ``find_cycle`` and ``layers``.

        Returns:
            List of error messages (empty if valid).
        """
        errors: list[str] = []

        seen: set[str] = set()
        for task in self._tasks:
            if task.id in seen:
                errors.append(f"Duplicate task id '{task.id}'")
            seen.add(task.id)

        for task in self._tasks:
            for dep_id in task.requires:
                if dep_id not in self._by_id:
                    errors.append(f"Task '{task.id}' requires unknown task '{dep_id}'")

        return errors

    def find_cycle(self) -> list[str] | None:
        """One dependency cycle as a list of ids, or None."""
        graph = {t.id: set(t.requires) & self._by_id.keys() for t in self._tasks}
        try:
            TopologicalSorter(graph).prepare()
        except CycleError as e:
            cycle = list(e.args[1])
            # graphlib repeats the first node at the end
            if len(cycle) > 1 and cycle[0] == cycle[-1]:
                cycle.pop()
            return cycle
        return None

    def _raise_if_invalid(self) -> None:
        errors = self.validate()
        if errors:
            raise ValidationError(f"Invalid task graph: {'; '.join(errors)}", errors)

    def layers(self) -> list[list[Task]]:
        """Group tasks into dependency layers.

        Each layer holds every remaining task whose dependencies all sit
        in earlier layers.

        Raises:
            ValidationError: Duplicate ids or unknown dependencies.
            CycleDetected: Some tasks can never be layered.
        """
        self._raise_if_invalid()

        assigned: set[str] = set()
        remaining = list(self._tasks)
        layers: list[list[Task]] = []
        while remaining:
            layer = [t for t in remaining if all(d in assigned for d in t.requires)]
            if not layer:
                raise CycleDetected(t.id for t in remaining)
            layers.append(layer)
            assigned.update(t.id for t in layer)
            remaining = [t for t in remaining if t.id not in assigned]
        return layers

    def topological_order(self) -> list[Task]:
        """Dependencies before dependents, ties broken by declaration order.

        Raises:
            ValidationError: Duplicate ids or unknown dependencies.
            CycleDetected: The graph has a cycle.
        """
        self._raise_if_invalid()

        in_degree = {t.id: len(t.requires) for t in self._tasks}
        heap = [self._index[t.id] for t in self._tasks if in_degree[t.id] == 0]
        heapq.heapify(heap)

        order: list[Task] = []
        while heap:
            task = self._tasks[heapq.heappop(heap)]
            order.append(task)
            for dependent in self.dependents(task.id):
                in_degree[dependent.id] -= 1
                if in_degree[dependent.id] == 0:
                    heapq.heappush(heap, self._index[dependent.id])

        if len(order) != len(self._tasks):
            done = {t.id for t in order}
            raise CycleDetected(t.id for t in self._tasks if t.id not in done)
        return order

    def critical_path(self) -> tuple[list[str], float]:
        """Costliest dependency chain.

        Returns:
            (task ids along the path, total cost of the path).
        """
        if not self._tasks:
            return [], 0.0

        best: dict[str, float] = {}
        via: dict[str, str | None] = {}
        for task in self.topological_order():
            prev = max(task.requires, key=lambda d: best[d], default=None)
            best[task.id] = task.cost + (best[prev] if prev else 0.0)
            via[task.id] = prev

        end: str | None = max(best, key=lambda k: best[k])
        cost = best[end]
        path: list[str] = []
        while end is not None:
            path.append(end)
            end = via[end]
        return list(reversed(path)), cost

    def __len__(self) -> int:
        return len(self._tasks)

    def __repr__(self) -> str:
        return f"DependencyGraph({[t.id for t in self._tasks]})"
