#!/usr/bin/env python3
"""
Animation Name Resolver Module
Collision-free display names for animation clips from different sources
"""

import uuid
from dataclasses import dataclass
from typing import Optional, Set, Tuple


@dataclass(frozen=True)
class NameConfig:
    """Naming policy

    Attributes:
        original_prefix: Decorative prefix for clips shipped with the model
        imported_prefix: Decorative prefix for externally imported clips
        max_name_length: Budget for prefix + cleaned name (before counters)
        max_attempts: Counter values tried before falling back to a random suffix
        noise_prefixes: Namespace prefixes stripped from incoming names
    """
    original_prefix: str = '🎬 '
    imported_prefix: str = '🎭 Mixamo: '
    max_name_length: int = 50
    max_attempts: int = 100
    noise_prefixes: Tuple[str, ...] = (
        'mixamorig:',
        'mixamo:',
        'Armature|',
        'Scene|',
        'RootNode|',
    )


DEFAULT_NAME_CONFIG = NameConfig()

ELLIPSIS = '...'


class NameResolver:
    """Generates unique animation display names

    Names are built as <origin prefix><cleaned base>. Collisions are resolved
    with a counter: "name (2)" style for imported clips, "name 2" style for
    native ones. Every allocated name is registered into the set it was
    checked against, so callers can scope uniqueness by passing their own set.
    """

    def __init__(self, config: NameConfig = DEFAULT_NAME_CONFIG):
        self.config = config
        self.used_names: Set[str] = set()

    def clean_name(self, name):
        """Strip whitespace and the first matching noise prefix"""
        clean = (name or '').strip()
        for prefix in self.config.noise_prefixes:
            if clean.startswith(prefix):
                clean = clean[len(prefix):]
                break
        return clean

    def unique_name(self, base, imported=False, used: Optional[Set[str]] = None):
        """Allocate a display name not present in `used`

        Args:
            base: Raw clip name
            imported: True for imported clips (selects prefix and counter style)
            used: Names to avoid; defaults to the resolver's own set

        Returns:
            str: The allocated name (also added to `used`)
        """
        names = self.used_names if used is None else used
        clean = self.clean_name(base)
        prefix = self.config.imported_prefix if imported else self.config.original_prefix

        proposed = f"{prefix}{clean}"
        if len(proposed) > self.config.max_name_length:
            keep = max(0, self.config.max_name_length - len(prefix) - len(ELLIPSIS))
            proposed = f"{prefix}{clean[:keep]}{ELLIPSIS}"

        return self.resolve_conflict(proposed, imported, names)

    def resolve_conflict(self, name, imported=False, used: Optional[Set[str]] = None):
        """Append a counter until `name` is free, then register it

        Args:
            name: Candidate name, used verbatim when free
            imported: Selects the counter format
            used: Names to avoid; defaults to the resolver's own set

        Returns:
            str: Free name (added to `used`)
        """
        names = self.used_names if used is None else used

        candidate = name
        counter = 1
        while candidate in names and counter < self.config.max_attempts:
            candidate = f"{name} ({counter})" if imported else f"{name} {counter}"
            counter += 1

        while candidate in names:
            candidate = f"{name} [{uuid.uuid4().hex[:6]}]"

        names.add(candidate)
        return candidate

    def has_conflict(self, name, used: Optional[Set[str]] = None):
        names = self.used_names if used is None else used
        return name in names

    def add_used_name(self, name):
        self.used_names.add(name)

    def reset_used_names(self):
        self.used_names.clear()

    def suggest_alternative_names(self, base, count=3):
        """Offer rename candidates not yet taken in the resolver's own set

        Args:
            base: Raw clip name
            count: Maximum number of suggestions

        Returns:
            list: Up to `count` free variations of the cleaned name
        """
        clean = self.clean_name(base)
        variations = [
            f"{clean} (alt)",
            f"{clean} v2",
            f"{clean} custom",
            f"Copy of {clean}",
            f"{clean} edit",
        ]
        suggestions = []
        for variation in variations:
            if len(suggestions) >= count:
                break
            if variation not in self.used_names:
                suggestions.append(variation)
        return suggestions
