#!/usr/bin/env python3
"""
Tests for NameResolver
Prefixing, noise stripping, truncation and collision counters
"""

from core.name_resolver import NameConfig, NameResolver


def test_native_and_imported_prefixes():
    resolver = NameResolver()
    used = set()

    assert resolver.unique_name("Walk", False, used) == "🎬 Walk"
    assert resolver.unique_name("Walk", True, used) == "🎭 Mixamo: Walk"
    assert used == {"🎬 Walk", "🎭 Mixamo: Walk"}


def test_noise_prefixes_are_stripped():
    resolver = NameResolver()
    used = set()

    assert resolver.unique_name("mixamorig:Run", False, used) == "🎬 Run"
    assert resolver.unique_name("Armature|Idle", True, used) == "🎭 Mixamo: Idle"
    assert resolver.clean_name("  Scene|Jump ") == "Jump"


def test_collision_counter_formats():
    resolver = NameResolver()
    used = set()

    resolver.unique_name("Walk", False, used)
    assert resolver.unique_name("Walk", False, used) == "🎬 Walk 1"
    assert resolver.unique_name("Walk", False, used) == "🎬 Walk 2"

    resolver.unique_name("Walk", True, used)
    assert resolver.unique_name("Walk", True, used) == "🎭 Mixamo: Walk (1)"


def test_never_returns_a_used_name():
    resolver = NameResolver()
    used = {"🎬 Dance", "🎬 Dance 1"}
    before = set(used)

    results = [resolver.unique_name("Dance", False, used) for _ in range(5)]

    assert len(set(results)) == 5
    assert not before & set(results)
    assert used == before | set(results)


def test_long_names_are_truncated_within_budget():
    resolver = NameResolver()

    native = resolver.unique_name("A" * 100, False, set())
    imported = resolver.unique_name("B" * 100, True, set())

    for name, prefix in ((native, "🎬 "), (imported, "🎭 Mixamo: ")):
        assert len(name) == 50
        assert name.startswith(prefix)
        assert name.endswith("...")


def test_short_names_are_not_truncated():
    resolver = NameResolver()
    assert resolver.unique_name("Short", False, set()) == "🎬 Short"


def test_random_suffix_after_max_attempts():
    resolver = NameResolver(NameConfig(max_attempts=3))
    used = {"🎬 X", "🎬 X 1", "🎬 X 2"}

    name = resolver.unique_name("X", False, used)

    assert name.startswith("🎬 X [")
    assert name.endswith("]")
    assert name in used
    assert len(used) == 4


def test_default_set_is_used_without_explicit_set():
    resolver = NameResolver()

    first = resolver.unique_name("Walk")
    second = resolver.unique_name("Walk")

    assert first != second
    assert resolver.used_names == {first, second}

    resolver.reset_used_names()
    assert resolver.unique_name("Walk") == first


def test_has_conflict_has_no_side_effects():
    resolver = NameResolver()
    used = {"🎬 Walk"}

    assert resolver.has_conflict("🎬 Walk", used)
    assert not resolver.has_conflict("🎬 Run", used)
    assert used == {"🎬 Walk"}
    assert not resolver.used_names


def test_resolve_conflict_keeps_free_names_verbatim():
    resolver = NameResolver()
    used = {"Walk"}

    assert resolver.resolve_conflict("Run", False, used) == "Run"
    assert resolver.resolve_conflict("Walk", True, used) == "Walk (1)"


def test_suggest_alternative_names_skips_used():
    resolver = NameResolver()
    resolver.add_used_name("Walk (alt)")

    suggestions = resolver.suggest_alternative_names("mixamorig:Walk")

    assert suggestions == ["Walk v2", "Walk custom", "Copy of Walk"]
    assert resolver.suggest_alternative_names("Walk", count=1) == ["Walk v2"]
