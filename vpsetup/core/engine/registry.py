"""
Module registry — the fixed catalog of modules and their actions.

Maps each module name to its descriptor (description, dependencies) and
to the callable that provisions it. All consistency checks happen at
construction time, so a registry that exists is a registry that can be
resolved and executed.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import Any

from vpsetup.core.errors import ConfigError, UnknownModuleError
from vpsetup.core.models.module import ModuleDescriptor
from vpsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

ModuleAction = Callable[[Any], Receipt]
BoundAction = Callable[[], Receipt]

FULL_BUNDLE = "full"


class ModuleRegistry:
    """Catalog of modules keyed by name, in catalog order."""

    def __init__(
        self,
        descriptors: Iterable[ModuleDescriptor],
        actions: Mapping[str, ModuleAction],
        bundles: Mapping[str, Sequence[str]] | None = None,
    ):
        self._descriptors: dict[str, ModuleDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise ConfigError(f"Duplicate module name in catalog: '{descriptor.name}'")
            self._descriptors[descriptor.name] = descriptor

        for descriptor in self._descriptors.values():
            for dep in descriptor.dependencies:
                if dep not in self._descriptors:
                    raise UnknownModuleError(dep, referenced_by=descriptor.name)

        for name in self._descriptors:
            if name not in actions:
                raise UnknownModuleError(name, referenced_by=None)
        for name in actions:
            if name not in self._descriptors:
                raise UnknownModuleError(name)
        self._actions = dict(actions)

        self._bundles: dict[str, list[str]] = {}
        for bundle_name, members in (bundles or {}).items():
            for member in members:
                if member not in self._descriptors:
                    raise UnknownModuleError(member, referenced_by=f"bundle:{bundle_name}")
            self._bundles[bundle_name] = list(members)
        self._bundles.setdefault(FULL_BUNDLE, list(self._descriptors))

        logger.debug(
            "Module registry ready: %d modules, bundles=%s",
            len(self._descriptors),
            sorted(self._bundles),
        )

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def names(self) -> list[str]:
        """Module names in catalog order."""
        return list(self._descriptors)

    def describe(self, name: str) -> ModuleDescriptor:
        """Descriptor for ``name``.

        Raises:
            UnknownModuleError: If ``name`` is not in the catalog.
        """
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownModuleError(name) from None

    def action(self, name: str) -> ModuleAction:
        """The provisioning callable for ``name``."""
        self.describe(name)
        return self._actions[name]

    def bundle(self, name: str) -> list[str]:
        """Module names of a named selection bundle (``quick``, ``auto``, ``full``)."""
        try:
            return list(self._bundles[name])
        except KeyError:
            raise KeyError(f"Unknown bundle: '{name}'") from None

    @property
    def bundles(self) -> dict[str, list[str]]:
        return {name: list(members) for name, members in self._bundles.items()}

    def bind(self, context: Any, names: Iterable[str] | None = None) -> dict[str, BoundAction]:
        """Zero-argument actions with ``context`` applied, ready for the orchestrator."""
        selected = list(names) if names is not None else self.names()
        return {name: functools.partial(self.action(name), context) for name in selected}
