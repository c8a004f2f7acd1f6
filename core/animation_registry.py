#!/usr/bin/env python3
"""
Animation Registry Module
Keeps the model's own clips and imported clips in one uniquely-named list
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .errors import AnimationNotFoundError
from .name_resolver import NameResolver
from .progress import ProgressReporter
from .retargeting import RetargetingEngine
from .scene_data import AnimationClip, SceneNode, Skeleton


class AnimationOrigin(Enum):
    """Where a registry entry came from"""
    NATIVE = "native"
    IMPORTED = "imported"


@dataclass
class ImportedAnimation:
    """Externally loaded clip waiting to be merged

    Attributes:
        id: Caller-assigned identifier (kept as the registry id)
        name: Display label of the source (usually the file name)
        clip: The loaded clip
        url: Where the clip was loaded from
        source_root: Scene root loaded with the clip, used for retargeting
    """
    id: str
    name: str
    clip: AnimationClip
    url: str = ""
    source_root: Optional[SceneNode] = None


@dataclass
class RegistryItem:
    """Single registry entry

    Attributes:
        id: Unique entry id
        display_name: Unique display name (also baked into clip.name)
        clip: Registry-owned copy of the clip
        origin: NATIVE or IMPORTED
        original_name: Clip name before resolution
        is_renamed: True once renamed by the user
    """
    id: str
    display_name: str
    clip: AnimationClip
    origin: AnimationOrigin
    original_name: str = ""
    is_renamed: bool = False


class AnimationRegistry(ProgressReporter):
    """Two-partition store of animation entries

    The native partition is replaced wholesale when a model is loaded, the
    imported partition when the imported list changes. Display names are
    unique across both partitions at all times.
    """

    def __init__(self, name_resolver: Optional[NameResolver] = None,
                 retargeting_engine: Optional[RetargetingEngine] = None,
                 progress_callback=None):
        super().__init__(progress_callback)
        self.name_resolver = name_resolver or NameResolver()
        self.retargeting_engine = retargeting_engine or RetargetingEngine(
            progress_callback=progress_callback)
        self._native: List[RegistryItem] = []
        self._imported: List[RegistryItem] = []

    @property
    def items(self):
        return tuple(self._native + self._imported)

    def __len__(self):
        return len(self._native) + len(self._imported)

    @staticmethod
    def _names_of(items):
        return {item.display_name for item in items}

    def add_native(self, clips: List[AnimationClip]):
        """Replace the native partition with copies of `clips`

        Args:
            clips: The loaded model's own clips (never aliased)

        Returns:
            list: The new native RegistryItems
        """
        used = self._names_of(self._imported)
        items = []
        for index, clip in enumerate(clips):
            owned = clip.clone()
            original_name = clip.name or f"Animation {index + 1}"
            display_name = self.name_resolver.unique_name(original_name, False, used)
            owned.name = display_name
            items.append(RegistryItem(
                id=uuid.uuid4().hex,
                display_name=display_name,
                clip=owned,
                origin=AnimationOrigin.NATIVE,
                original_name=original_name,
            ))

        self._native = items
        self.log(f"Registered {len(items)} native animation(s)")
        return list(items)

    def add_imported(self, imported: List[ImportedAnimation],
                     destination_skeleton: Optional[Skeleton] = None):
        """Replace the imported partition

        Each clip is retargeted onto `destination_skeleton` when both it and
        the item's source root are available, otherwise copied unmodified.

        Args:
            imported: ImportedAnimation items
            destination_skeleton: Skeleton of the loaded model, if any

        Returns:
            list: The new imported RegistryItems
        """
        used = self._names_of(self._native)
        items = []
        for index, entry in enumerate(imported):
            if destination_skeleton is not None and entry.source_root is not None:
                clip = self.retargeting_engine.retarget(
                    entry.clip, entry.source_root, destination_skeleton)
            else:
                clip = entry.clip.clone()

            original_name = entry.clip.name or f"Imported Animation {index + 1}"
            display_name = self.name_resolver.unique_name(original_name, True, used)
            clip.name = display_name
            items.append(RegistryItem(
                id=entry.id,
                display_name=display_name,
                clip=clip,
                origin=AnimationOrigin.IMPORTED,
                original_name=original_name,
            ))

        self._imported = items
        self.log(f"Registered {len(items)} imported animation(s)")
        return list(items)

    def rename(self, animation_id, new_name):
        """Rename one entry, keeping names unique

        Args:
            animation_id: Entry id
            new_name: Requested name; blank keeps the current name, a taken
                      name gets a counter suffix

        Returns:
            bool: True once the entry carries its (possibly resolved) name

        Raises:
            AnimationNotFoundError: No entry with that id
        """
        item = self.get(animation_id)
        if item is None:
            raise AnimationNotFoundError(animation_id)

        name = (new_name or '').strip()
        if not name or name == item.display_name:
            return True

        others = {other.display_name for other in self.items if other is not item}
        if name in others:
            name = self.name_resolver.resolve_conflict(
                name, item.origin == AnimationOrigin.IMPORTED, others)

        item.display_name = name
        item.clip.name = name
        item.is_renamed = True
        return True

    def get(self, animation_id) -> Optional[RegistryItem]:
        for item in self.items:
            if item.id == animation_id:
                return item
        return None

    def get_by_name(self, display_name) -> Optional[RegistryItem]:
        for item in self.items:
            if item.display_name == display_name:
                return item
        return None

    def all_clips(self):
        return [item.clip for item in self.items]

    def all_names(self):
        return [item.display_name for item in self.items]

    def clear(self):
        self._native = []
        self._imported = []
