#!/usr/bin/env python3
"""
Scene Processor Module
Builds export-ready copies of the scene and its animations

The live scene is never modified: prepare_scene() works on a deep copy in
which skeletons point at the copied bones, and prepare_animations() works on
clip copies.
"""

import copy

import numpy as np

from .export_validator import ValidationResult
from .progress import ProgressReporter


DEFAULT_ALPHA_TEST = 0.1


def _inverse(matrix):
    try:
        return np.linalg.inv(matrix)
    except np.linalg.LinAlgError:
        return np.eye(4)


class SceneProcessor(ProgressReporter):
    """Sanitizes scenes and animation clips for serialization"""

    def __init__(self, progress_callback=None):
        super().__init__(progress_callback)

    # === SCENE ===

    def prepare_scene(self, original):
        """Create a clean, export-ready copy of the scene

        Args:
            original: Scene root (SceneNode); left untouched

        Returns:
            SceneNode: Detached copy with identity root transform, updated
                       world matrices, normals, bounds and names
        """
        # Map the original's parent to None so the copy is detached
        memo = {id(original.parent): None} if original.parent is not None else {}
        scene = copy.deepcopy(original, memo)
        scene.parent = None

        scene.reset_transform()
        scene.update_world_matrix()

        # Bones first, so they get skeleton-order names instead of generic ones
        for node in scene.traverse():
            if node.is_skinned and node.skeleton is not None:
                self._process_skinned_mesh(node)

        for node in scene.traverse():
            if not node.name:
                node.name = f"Object_{node.uid}"
            if node.is_mesh:
                self._process_mesh(node)

        return scene

    def _process_mesh(self, mesh):
        geometry = mesh.geometry
        if geometry is not None and geometry.positions is not None:
            if geometry.normals is None or len(geometry.normals) != geometry.vertex_count:
                geometry.compute_vertex_normals()
            geometry.compute_bounding_box()
            geometry.compute_bounding_sphere()

        for material in mesh.materials:
            self._process_material(material)

    def _process_skinned_mesh(self, mesh):
        skeleton = mesh.skeleton
        for index, bone in enumerate(skeleton.bones):
            if not bone.name:
                bone.name = f"Bone_{index}"

        if skeleton.bone_inverses is None or len(skeleton.bone_inverses) != len(skeleton.bones):
            skeleton.bone_inverses = [_inverse(bone.matrix_world) for bone in skeleton.bones]

        if mesh.bind_matrix is None:
            mesh.bind_matrix = np.eye(4)
        if mesh.bind_matrix_inverse is None:
            mesh.bind_matrix_inverse = _inverse(mesh.bind_matrix)

    def _process_material(self, material):
        if not material.name:
            material.name = f"Material_{material.uuid}"

        if material.opacity < 1.0 and not material.transparent:
            material.transparent = True

        if material.transparent and material.alpha_test == 0:
            material.alpha_test = DEFAULT_ALPHA_TEST

    # === ANIMATIONS ===

    def prepare_animations(self, clips):
        """Clean copies of clips, dropping or repairing invalid tracks

        Args:
            clips: List of AnimationClip; left untouched

        Returns:
            list: Sanitized clips; clips left without tracks are omitted
        """
        prepared = []
        for index, clip in enumerate(clips):
            processed = clip.clone()

            if not processed.name or not processed.name.strip():
                processed.name = f"Animation_{index + 1}"
            if processed.duration is None or processed.duration < 0:
                processed.reset_duration()

            kept = []
            for track in processed.tracks:
                if self._sanitize_track(track, processed.name):
                    kept.append(track)
            processed.tracks = kept
            processed.optimize()

            if not processed.tracks:
                self.log(f"  Dropping animation \"{processed.name}\": no valid tracks")
                continue
            prepared.append(processed)

        return prepared

    def _sanitize_track(self, track, clip_name):
        """Repair a track in place; False means drop it"""
        if track is None or not track.name or track.times is None or track.values is None:
            self.log(f"  Removing invalid track from animation \"{clip_name}\"")
            return False

        if len(track.times) == 0:
            self.log(f"  Removing empty track \"{track.name}\" from animation \"{clip_name}\"")
            return False

        expected = track.expected_value_count
        if len(track.values) > expected:
            self.log(f"  Trimming track \"{track.name}\" from {len(track.values)} to {expected} values")
            track.values = track.values[:expected].copy()
        elif len(track.values) < expected:
            self.log(f"  Cannot fix track \"{track.name}\" "
                     f"({len(track.values)} of {expected} values), removing")
            return False

        if len(track.times) > 1 and np.any(np.diff(track.times) <= 0):
            self.log(f"  Removing track \"{track.name}\": key times are not increasing")
            return False

        return True

    # === HIERARCHY ===

    def validate_hierarchy(self, scene):
        """Detect cycles in the parent/child structure

        Each node's parent chain is walked with its own visited-set; a node
        reachable twice through children is reported as well.

        Args:
            scene: Scene root

        Returns:
            ValidationResult: ok is False when any cycle was found
        """
        if scene is None:
            return ValidationResult.from_lists(["Scene is missing"])

        issues = []
        seen = set()
        stack = [scene]
        while stack:
            node = stack.pop()
            label = node.name or f"#{node.uid}"
            if node in seen:
                issues.append(f'Object "{label}" is reachable more than once through children')
                continue
            seen.add(node)

            visited = set()
            parent = node.parent
            while parent is not None:
                if parent in visited:
                    issues.append(f'Circular reference detected in object "{label}"')
                    break
                visited.add(parent)
                parent = parent.parent

            stack.extend(node.children)

        return ValidationResult.from_lists(issues)
