"""
Dependency resolver — expand a module selection with its prerequisites.

Produces an execution order in which every module appears after all of
its transitive dependencies, with no duplicates. Dependencies keep the
order they are declared in, and unrelated requested modules keep the
order they were requested in.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from typing import Protocol

from vpsetup.core.errors import DependencyCycleError
from vpsetup.core.models.module import ModuleDescriptor

logger = logging.getLogger(__name__)


class Catalog(Protocol):
    def describe(self, name: str) -> ModuleDescriptor: ...

    def names(self) -> list[str]: ...


def resolve(requested: Iterable[str], catalog: Catalog) -> list[str]:
    """Resolve requested modules into a dependency-respecting order.

    Works a queue from the front: a name whose dependencies are all
    resolved is appended to the result; otherwise its unresolved
    dependencies are pushed in front of it and it is retried after
    them. Meeting a name again while it is still waiting on its own
    dependencies means the dependencies loop.

    Args:
        requested: Module names, in request order. Duplicates are allowed.
        catalog: Anything with ``describe(name)`` (usually a ModuleRegistry).

    Returns:
        Ordered list of module names to execute.

    Raises:
        UnknownModuleError: A requested name or a dependency is not in the catalog.
        DependencyCycleError: The dependency graph has a cycle.
    """
    requested = list(requested)
    queue: deque[str] = deque(requested)
    resolved: list[str] = []
    done: set[str] = set()
    expanding: list[str] = []

    while queue:
        name = queue.popleft()
        if name in done:
            continue

        descriptor = catalog.describe(name)
        pending = [dep for dep in descriptor.dependencies if dep not in done]

        if not pending:
            resolved.append(name)
            done.add(name)
            if name in expanding:
                expanding.remove(name)
            continue

        if name in expanding:
            start = expanding.index(name)
            raise DependencyCycleError([*expanding[start:], name])

        for dep in pending:
            catalog.describe(dep)
        expanding.append(name)
        queue.extendleft(reversed([*pending, name]))

    logger.debug("Resolved %s → %s", requested, resolved)
    return resolved


def parse_module_list(text: str, catalog: Catalog) -> list[str]:
    """Split a comma-separated module list; ``all`` selects the whole catalog.

    Names are not validated here (``resolve`` does that).
    """
    names = [part.strip() for part in text.split(",") if part.strip()]
    if any(name.lower() == "all" for name in names):
        return catalog.names()
    return names

