from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterator, Sequence

from milestone_graph.core.model import Milestone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencyOrder:
    """Topological view of a project's milestones.

    order:         every milestone id, each after all of its parents
    parents:       id -> parents that exist and are not part of a cycle
    ignored_edges: (milestone_id, parent_id) pairs dropped to break a cycle
    """

    order: list[str]
    parents: dict[str, list[str]]
    ignored_edges: list[tuple[str, str]]


def dependency_order(milestones: Sequence[Milestone]) -> DependencyOrder:
    """Order milestones so every parent precedes its dependents.

    Iterative depth-first walk over dependency edges with a visiting set.
    Dangling ids are skipped. An edge that points back into the current walk
    would close a cycle; it is dropped and reported, so callers always get a
    usable order. Ties follow project order.
    """

    known = {m.id for m in milestones}
    raw_parents: dict[str, tuple[str, ...]] = {m.id: m.depends_on for m in milestones}

    WHITE, GRAY, BLACK = 0, 1, 2
    state: dict[str, int] = {nid: WHITE for nid in raw_parents}
    order: list[str] = []
    ignored: list[tuple[str, str]] = []

    for start in raw_parents:
        if state[start] != WHITE:
            continue
        state[start] = GRAY
        stack: list[tuple[str, Iterator[str]]] = [(start, iter(raw_parents[start]))]
        while stack:
            nid, it = stack[-1]
            advanced = False
            for p in it:
                if p not in known:
                    continue
                if state[p] == GRAY:
                    ignored.append((nid, p))
                    continue
                if state[p] == WHITE:
                    state[p] = GRAY
                    stack.append((p, iter(raw_parents[p])))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                state[nid] = BLACK
                order.append(nid)

    dropped = set(ignored)
    for nid, p in ignored:
        logger.warning("dependency cycle: ignoring edge %s -> %s", p, nid)

    parents: dict[str, list[str]] = {}
    for nid, deps in raw_parents.items():
        parents[nid] = [p for p in _unique(deps) if p in known and (nid, p) not in dropped]

    return DependencyOrder(order=order, parents=parents, ignored_edges=ignored)


def children_map(milestones: Sequence[Milestone]) -> dict[str, list[str]]:
    """Reverse dependency edges: id -> milestones that list id in depends_on."""
    known = {m.id for m in milestones}
    children: dict[str, list[str]] = defaultdict(list)
    for m in milestones:
        for p in _unique(m.depends_on):
            if p in known:
                children[p].append(m.id)
    return dict(children)


def _unique(ids: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for x in ids:
        if x not in seen:
            seen.add(x)
            out.append(x)
    return out
