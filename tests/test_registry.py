"""
Tests for the module catalog, registry and dependency resolver.
"""

from __future__ import annotations

import itertools
from pathlib import Path

import pytest

from vpsetup.core.config.catalog_loader import load_catalog
from vpsetup.core.engine.registry import ModuleRegistry
from vpsetup.core.engine.resolver import parse_module_list, resolve
from vpsetup.core.errors import ConfigError, DependencyCycleError, UnknownModuleError
from vpsetup.core.models.module import ModuleDescriptor
from vpsetup.provisioning import ACTIONS, build_registry

CATALOG_ORDER = [
    "system_update",
    "user_management",
    "ssh_hardening",
    "firewall",
    "security",
    "docker",
    "docker_ufw",
    "monitoring",
    "backup",
    "samba",
]


def _noop(_ctx):
    raise AssertionError("not called")


# ── Catalog ─────────────────────────────────────────────────────


class TestCatalog:
    def test_packaged_catalog(self):
        catalog = load_catalog()
        assert [m.name for m in catalog.modules] == CATALOG_ORDER

    def test_docker_ufw_dependencies(self):
        catalog = {m.name: m for m in load_catalog().modules}
        assert catalog["docker_ufw"].dependencies == ("docker", "firewall")
        assert all(not m.dependencies for name, m in catalog.items() if name != "docker_ufw")

    def test_bundles(self):
        bundles = load_catalog().bundles
        assert bundles["quick"] == ["system_update", "user_management", "ssh_hardening", "firewall", "security"]
        assert bundles["auto"][-2:] == ["docker", "docker_ufw"]

    def test_missing_catalog(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Cannot load"):
            load_catalog(tmp_path / "missing.yml")

    def test_catalog_not_mapping(self, tmp_path: Path):
        path = tmp_path / "modules.yml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_catalog(path)

    def test_catalog_invalid_entry(self, tmp_path: Path):
        path = tmp_path / "modules.yml"
        path.write_text("modules:\n  - name: ''\n")
        with pytest.raises(ConfigError, match="Invalid module catalog"):
            load_catalog(path)


# ── Registry ────────────────────────────────────────────────────


class TestRegistry:
    def test_build_registry(self):
        registry = build_registry()
        assert registry.names() == CATALOG_ORDER
        assert len(registry) == 10
        assert set(ACTIONS) == set(CATALOG_ORDER)
        assert "docker" in registry
        assert "kubernetes" not in registry

    def test_full_bundle_added(self):
        registry = build_registry()
        assert registry.bundle("full") == CATALOG_ORDER
        assert set(registry.bundles) == {"quick", "auto", "full"}

    def test_unknown_bundle(self):
        with pytest.raises(KeyError, match="Unknown bundle"):
            build_registry().bundle("everything")

    def test_describe(self):
        descriptor = build_registry().describe("firewall")
        assert descriptor.description == "UFW Firewall Configuration"

    def test_describe_unknown(self):
        with pytest.raises(UnknownModuleError, match="Unknown module: 'nginx'"):
            build_registry().describe("nginx")

    def test_unknown_dependency_rejected(self):
        descriptors = [ModuleDescriptor(name="a", dependencies=("ghost",))]
        with pytest.raises(UnknownModuleError, match="'a' depends on unknown module 'ghost'"):
            ModuleRegistry(descriptors, {"a": _noop})

    def test_missing_action_rejected(self):
        descriptors = [ModuleDescriptor(name="a"), ModuleDescriptor(name="b")]
        with pytest.raises(UnknownModuleError):
            ModuleRegistry(descriptors, {"a": _noop})

    def test_extra_action_rejected(self):
        with pytest.raises(UnknownModuleError):
            ModuleRegistry([ModuleDescriptor(name="a")], {"a": _noop, "b": _noop})

    def test_duplicate_name_rejected(self):
        descriptors = [ModuleDescriptor(name="a"), ModuleDescriptor(name="a")]
        with pytest.raises(ConfigError, match="Duplicate"):
            ModuleRegistry(descriptors, {"a": _noop})

    def test_bundle_with_unknown_member_rejected(self):
        with pytest.raises(UnknownModuleError):
            ModuleRegistry([ModuleDescriptor(name="a")], {"a": _noop}, bundles={"quick": ["a", "b"]})

    def test_bind(self, make_registry):
        registry, calls = make_registry({"a": [], "b": []})
        bound = registry.bind(context=object(), names=["b"])
        assert list(bound) == ["b"]
        receipt = bound["b"]()
        assert receipt.ok
        assert calls == ["b"]


# ── Resolver ────────────────────────────────────────────────────


class TestResolve:
    def test_empty(self, make_registry):
        registry, _ = make_registry({"a": []})
        assert resolve([], registry) == []

    def test_duplicates_collapse(self, make_registry):
        registry, _ = make_registry({"a": []})
        assert resolve(["a", "a"], registry) == ["a"]

    def test_request_order_kept(self, make_registry):
        registry, _ = make_registry({"a": [], "b": [], "c": []})
        assert resolve(["c", "a", "b"], registry) == ["c", "a", "b"]

    def test_transitive_chain(self, make_registry):
        registry, _ = make_registry({"x": [], "y": ["x"], "z": ["y"]})
        assert resolve(["z"], registry) == ["x", "y", "z"]

    def test_diamond(self, make_registry):
        registry, _ = make_registry({"d": [], "b": ["d"], "c": ["d"], "a": ["b", "c"]})
        assert resolve(["a"], registry) == ["d", "b", "c", "a"]

    def test_dependency_already_requested(self, make_registry):
        registry, _ = make_registry({"x": [], "y": ["x"]})
        assert resolve(["x", "y"], registry) == ["x", "y"]
        assert resolve(["y", "x"], registry) == ["x", "y"]

    def test_docker_ufw_pulls_dependencies(self):
        assert resolve(["docker_ufw"], build_registry()) == ["docker", "firewall", "docker_ufw"]

    def test_docker_ufw_with_firewall_first(self):
        registry = build_registry()
        assert resolve(["firewall", "docker_ufw"], registry) == ["firewall", "docker", "docker_ufw"]

    def test_unknown_requested(self):
        with pytest.raises(UnknownModuleError, match="'nginx'"):
            resolve(["firewall", "nginx"], build_registry())

    def test_cycle(self, make_registry):
        registry, _ = make_registry({"a": ["b"], "b": ["a"]})
        with pytest.raises(DependencyCycleError) as exc_info:
            resolve(["a"], registry)
        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc_info.value)

    def test_self_cycle(self, make_registry):
        registry, _ = make_registry({"a": ["a"]})
        with pytest.raises(DependencyCycleError):
            resolve(["a"], registry)

    def test_longer_cycle_reported_from_its_start(self, make_registry):
        registry, _ = make_registry({"root": ["a"], "a": ["b"], "b": ["c"], "c": ["a"]})
        with pytest.raises(DependencyCycleError) as exc_info:
            resolve(["root"], registry)
        assert exc_info.value.cycle == ["a", "b", "c", "a"]

    def test_accepts_generator(self):
        names = (n for n in ["docker_ufw"])
        assert resolve(names, build_registry())[-1] == "docker_ufw"

    def test_every_catalog_selection(self):
        registry = build_registry()
        names = registry.names()
        for size in range(len(names) + 1):
            for requested in itertools.combinations(names, size):
                order = resolve(requested, registry)
                assert len(order) == len(set(order))
                assert set(requested) <= set(order)
                for position, name in enumerate(order):
                    for dep in registry.describe(name).dependencies:
                        assert order.index(dep) < position


class TestParseModuleList:
    def test_split_and_strip(self):
        assert parse_module_list(" firewall, docker ,,security", build_registry()) == [
            "firewall",
            "docker",
            "security",
        ]

    def test_all(self):
        registry = build_registry()
        assert parse_module_list("all", registry) == registry.names()
        assert parse_module_list("firewall,ALL", registry) == registry.names()

    def test_empty(self):
        assert parse_module_list(" , ", build_registry()) == []
