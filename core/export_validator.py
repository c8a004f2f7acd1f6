#!/usr/bin/env python3
"""
Export Validator Module
Pre-serialization checks separating hard issues from warnings
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np


@dataclass
class ValidationResult:
    """Outcome of a validation pass

    Attributes:
        ok: True iff issues is empty
        issues: Hard problems that block the export
        warnings: Quality problems that do not block the export
    """
    ok: bool
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_lists(cls, issues, warnings=None):
        return cls(ok=not issues, issues=list(issues), warnings=list(warnings or []))

    def merge(self, other):
        return ValidationResult.from_lists(self.issues + other.issues,
                                           self.warnings + other.warnings)


class ExportValidator:
    """Inspects a scene and its animations before export"""

    def validate(self, scene, animations):
        """Validate scene and animations together

        Args:
            scene: Scene root (SceneNode) or None
            animations: List of AnimationClip

        Returns:
            ValidationResult: Merged result; ok is False on any issue
        """
        return self.validate_scene(scene).merge(self.validate_animations(animations))

    def validate_scene(self, scene):
        issues = []
        warnings = []

        if scene is None:
            issues.append("Scene is missing")
            return ValidationResult.from_lists(issues, warnings)

        has_geometry = False
        has_materials = False

        for node in scene.traverse():
            if not node.is_mesh:
                continue
            label = node.name or f"#{node.uid}"
            has_geometry = True

            geometry = node.geometry
            if geometry is None:
                issues.append(f'Mesh "{label}" has no geometry')
            elif geometry.positions is None:
                issues.append(f'Mesh "{label}" has no position attribute')
            elif geometry.indices is not None and len(geometry.indices):
                if len(geometry.indices) % 3:
                    issues.append(f'Mesh "{label}" has {len(geometry.indices)} indices, '
                                  f'not a multiple of 3')
                if geometry.indices.min() < 0 or geometry.indices.max() >= geometry.vertex_count:
                    issues.append(f'Mesh "{label}" has triangle indices out of range')

            if node.materials:
                has_materials = True
            else:
                warnings.append(f'Mesh "{label}" has no material')

            if node.is_skinned:
                if node.skeleton is None:
                    issues.append(f'SkinnedMesh "{label}" has no skeleton')
                elif not node.skeleton.bones and geometry is not None and geometry.has_skinning:
                    issues.append(f'SkinnedMesh "{label}" has skin weights but an empty skeleton')

        if not has_geometry:
            warnings.append("Scene contains no geometry")
        if not has_materials:
            warnings.append("Scene contains no materials")

        return ValidationResult.from_lists(issues, warnings)

    def validate_animations(self, animations):
        issues = []
        warnings = []

        if not animations:
            warnings.append("No animations to export")
            return ValidationResult.from_lists(issues, warnings)

        for index, clip in enumerate(animations):
            named = bool(clip.name and clip.name.strip())
            label = clip.name if named else str(index)
            if not named:
                warnings.append(f"Animation {index} has no name")

            if not clip.tracks:
                issues.append(f'Animation "{label}" has no tracks')
                continue

            for track_index, track in enumerate(clip.tracks):
                if not track.name:
                    issues.append(f'Track {track_index} in animation "{label}" has no name')
                if track.times is None or len(track.times) == 0:
                    issues.append(f'Track "{track.name}" in animation "{label}" has no keyframes')
                if track.values is None or len(track.values) == 0:
                    issues.append(f'Track "{track.name}" in animation "{label}" has no values')

                if track.times is not None and track.values is not None:
                    if len(track.values) != track.expected_value_count:
                        issues.append(f'Track "{track.name}" has mismatched times/values count')
                    elif len(track.times) > 1 and np.any(np.diff(track.times) <= 0):
                        warnings.append(f'Track "{track.name}" in animation "{label}" '
                                        f'has non-increasing key times')

        return ValidationResult.from_lists(issues, warnings)
