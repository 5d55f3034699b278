"""Ordering of targets into a deterministic execution plan.

``depends_on`` edges pull targets into the plan and order them.
``run_after`` is only a tie-break hint: among targets that are ready to run,
those named in a pending target's ``run_after`` go first, then name order.
The same inputs always yield the same order.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Set

from errors import DependencyCycle, UnknownTarget

from .base import Target


def _closure(targets: Mapping[str, Target], requested: str) -> Set[str]:
    if requested not in targets:
        raise UnknownTarget(
            f"target {requested!r} not found; available: {', '.join(sorted(targets))}",
            {"target": requested, "available": sorted(targets)},
        )
    seen: Set[str] = set()
    stack = [requested]
    while stack:
        name = stack.pop()
        if name in seen:
            continue
        seen.add(name)
        for dep in targets[name].depends_on():
            if dep not in targets:
                raise UnknownTarget(
                    f"target {name!r} depends on unknown target {dep!r}",
                    {"target": name, "dependency": dep},
                )
            stack.append(dep)
    return seen


def _find_cycle(edges: Mapping[str, List[str]], nodes: Set[str]) -> List[str]:
    """Return one cycle among ``nodes`` as a closed path, e.g. [a, b, a]."""
    visiting: List[str] = []
    on_path: Set[str] = set()
    done: Set[str] = set()

    def visit(node: str) -> List[str]:
        visiting.append(node)
        on_path.add(node)
        for nxt in sorted(edges.get(node, [])):
            if nxt not in nodes or nxt in done:
                continue
            if nxt in on_path:
                return visiting[visiting.index(nxt):] + [nxt]
            found = visit(nxt)
            if found:
                return found
        on_path.discard(visiting.pop())
        done.add(node)
        return []

    for start in sorted(nodes):
        if start not in done:
            found = visit(start)
            if found:
                return found
    return sorted(nodes)


def resolve(targets: Mapping[str, Target], requested: str) -> List[Target]:
    """Compute the execution plan for ``requested``.

    Args:
        targets: All targets offered by the buildpack, by name.
        requested: Name of the target the user asked for.

    Returns:
        Targets in execution order, ``requested`` last.

    Raises:
        UnknownTarget: ``requested`` or a dependency is not offered.
        DependencyCycle: ``depends_on`` edges form a cycle.
    """
    members = _closure(targets, requested)

    # prerequisite -> dependents
    edges: Dict[str, List[str]] = {name: [] for name in members}
    indegree: Dict[str, int] = {name: 0 for name in members}
    for name in members:
        for prereq in set(targets[name].depends_on()):
            edges[prereq].append(name)
            indegree[name] += 1

    ready = {name for name, deg in indegree.items() if deg == 0}
    order: List[str] = []
    while ready:
        pending = members - set(order)
        hinted = {n for p in pending for n in targets[p].run_after() if n != p}
        name = min(ready, key=lambda n: (n not in hinted, n))
        ready.discard(name)
        order.append(name)
        for dependent in edges[name]:
            indegree[dependent] -= 1
            if indegree[dependent] == 0:
                ready.add(dependent)

    if len(order) != len(members):
        # reverse edges so the reported path reads "needs"
        needs = {name: [p for p, ds in edges.items() if name in ds] for name in members}
        raise DependencyCycle(_find_cycle(needs, members - set(order)))
    return [targets[name] for name in order]
