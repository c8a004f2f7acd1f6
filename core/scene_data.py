#!/usr/bin/env python3
"""
Scene Data Module
Format-agnostic data structures for scene and animation representation.

This module defines the intermediate data structures that decouple the
loader (readers) from the export pipeline. Readers build these structures,
and the registry, processor, retargeting engine and exporters consume them
without knowledge of the source format.
"""

import copy
import itertools
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .transforms import compose_matrix


# Number of value components per animated property (three.js track semantics)
PROPERTY_COMPONENTS = {
    'position': 3,
    'scale': 3,
    'rotation': 3,
    'quaternion': 4,
    'color': 3,
    'morphTargetInfluences': 1,
    'opacity': 1,
    'visible': 1,
}

_node_ids = itertools.count(1)


def component_count(property_name):
    """Number of values per keyframe for an animated property

    Args:
        property_name: Property part of a track name (e.g. "quaternion")

    Returns:
        int: Component count (1 for unknown/scalar properties)
    """
    if not property_name:
        return 1
    base = property_name.split('[', 1)[0]
    return PROPERTY_COMPONENTS.get(base, 1)


def _as_float_array(values, columns=None):
    if values is None:
        return None
    array = np.asarray(values, dtype=np.float64)
    if columns is not None:
        array = array.reshape(-1, columns)
    return array


class NodeKind(Enum):
    """Scene node classification"""
    GROUP = "group"
    MESH = "mesh"
    SKINNED_MESH = "skinned_mesh"
    BONE = "bone"


@dataclass(eq=False)
class Geometry:
    """Mesh geometry with optional per-vertex attributes

    Attributes:
        positions: (N, 3) vertex positions, None if the attribute is missing
        normals: (N, 3) vertex normals, None if not computed yet
        uvs: (N, 2) texture coordinates
        indices: Flat triangle index list (3 per triangle), None for non-indexed
        skin_indices: (N, 4) bone indices for skinned meshes
        skin_weights: (N, 4) bone weights for skinned meshes
        bounding_box: (min, max) corners, filled by compute_bounding_box()
        bounding_sphere: (center, radius), filled by compute_bounding_sphere()
    """
    positions: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    uvs: Optional[np.ndarray] = None
    indices: Optional[np.ndarray] = None
    skin_indices: Optional[np.ndarray] = None
    skin_weights: Optional[np.ndarray] = None
    bounding_box: Optional[Tuple[np.ndarray, np.ndarray]] = None
    bounding_sphere: Optional[Tuple[np.ndarray, float]] = None

    def __post_init__(self):
        self.positions = _as_float_array(self.positions, 3)
        self.normals = _as_float_array(self.normals, 3)
        self.uvs = _as_float_array(self.uvs, 2)
        self.skin_indices = _as_float_array(self.skin_indices, 4)
        self.skin_weights = _as_float_array(self.skin_weights, 4)
        if self.indices is not None:
            self.indices = np.asarray(self.indices, dtype=np.int64).ravel()

    @property
    def vertex_count(self):
        return 0 if self.positions is None else len(self.positions)

    @property
    def has_skinning(self):
        return self.skin_indices is not None or self.skin_weights is not None

    def triangles(self):
        """Triangle vertex indices as an (M, 3) array

        Non-indexed geometry uses consecutive vertex triplets.
        """
        if self.indices is not None:
            usable = len(self.indices) - len(self.indices) % 3
            return self.indices[:usable].reshape(-1, 3)
        usable = self.vertex_count - self.vertex_count % 3
        return np.arange(usable, dtype=np.int64).reshape(-1, 3)

    def compute_vertex_normals(self):
        """Compute smooth vertex normals from area-weighted face normals"""
        if self.positions is None:
            return
        normals = np.zeros_like(self.positions)
        tris = self.triangles()
        if len(tris):
            v0 = self.positions[tris[:, 0]]
            v1 = self.positions[tris[:, 1]]
            v2 = self.positions[tris[:, 2]]
            face_normals = np.cross(v1 - v0, v2 - v0)
            for corner in range(3):
                np.add.at(normals, tris[:, corner], face_normals)

        lengths = np.linalg.norm(normals, axis=1, keepdims=True)
        lengths[lengths < 1e-12] = 1.0
        self.normals = normals / lengths

    def compute_bounding_box(self):
        if self.positions is None or not len(self.positions):
            self.bounding_box = (np.zeros(3), np.zeros(3))
            return
        self.bounding_box = (self.positions.min(axis=0), self.positions.max(axis=0))

    def compute_bounding_sphere(self):
        if self.bounding_box is None:
            self.compute_bounding_box()
        center = (self.bounding_box[0] + self.bounding_box[1]) / 2.0
        if self.positions is None or not len(self.positions):
            self.bounding_sphere = (center, 0.0)
            return
        radius = float(np.max(np.linalg.norm(self.positions - center, axis=1)))
        self.bounding_sphere = (center, radius)


@dataclass
class Material:
    """Surface material (only the fields the export pipeline touches)

    Attributes:
        name: Material name (synthesized by the processor if empty)
        color: Diffuse RGB color
        opacity: 0.0 (invisible) to 1.0 (opaque)
        transparent: Whether blending is enabled
        alpha_test: Alpha cutoff threshold
        uuid: Stable per-object identifier
    """
    name: str = ""
    color: Tuple[float, float, float] = (0.8, 0.8, 0.8)
    opacity: float = 1.0
    transparent: bool = False
    alpha_test: float = 0.0
    uuid: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(eq=False)
class Skeleton:
    """Ordered bone list bound to a skinned mesh

    Bones are SceneNode objects living in the scene tree, so a deep copy of
    the tree re-links them to the copied nodes.

    Attributes:
        bones: Ordered bone nodes (skin_indices refer to this order)
        bone_inverses: Optional inverse bind matrices, one per bone
    """
    bones: List['SceneNode'] = field(default_factory=list)
    bone_inverses: Optional[List[np.ndarray]] = None

    @property
    def bone_names(self):
        return [bone.name for bone in self.bones]

    def get_bone_by_name(self, name):
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None

    def root_bone(self):
        """First bone whose parent is not itself a bone of this skeleton"""
        members = set(self.bones)
        for bone in self.bones:
            if bone.parent not in members:
                return bone
        return self.bones[0] if self.bones else None


@dataclass(eq=False)
class SceneNode:
    """Transform-bearing node of the scene tree

    Nodes compare and hash by identity, so they can be used as keys in
    visited-sets and mappings.

    Attributes:
        name: Node name (may be empty until the processor names it)
        kind: GROUP, MESH, SKINNED_MESH or BONE
        position: Local translation [x, y, z]
        rotation: Local XYZ Euler rotation in radians
        scale: Local scale
        geometry: Mesh geometry (mesh kinds only)
        materials: Zero or more materials (mesh kinds only)
        skeleton: Bound skeleton (skinned meshes only)
        bind_matrix: Skinned mesh bind matrix
        bind_matrix_inverse: Inverse of bind_matrix
        children: Child nodes in order
        parent: Parent node, None for the root
        matrix_world: World matrix, refreshed by update_world_matrix()
        uid: Stable per-object identifier (kept by copies)
    """
    name: str = ""
    kind: NodeKind = NodeKind.GROUP
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    scale: np.ndarray = field(default_factory=lambda: np.ones(3))
    geometry: Optional[Geometry] = None
    materials: List[Material] = field(default_factory=list)
    skeleton: Optional[Skeleton] = None
    bind_matrix: Optional[np.ndarray] = None
    bind_matrix_inverse: Optional[np.ndarray] = None
    children: List['SceneNode'] = field(default_factory=list, repr=False)
    parent: Optional['SceneNode'] = field(default=None, repr=False)
    matrix_world: np.ndarray = field(default_factory=lambda: np.eye(4), repr=False)
    uid: int = field(default_factory=lambda: next(_node_ids))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        self.rotation = np.asarray(self.rotation, dtype=np.float64)
        self.scale = np.asarray(self.scale, dtype=np.float64)
        for child in self.children:
            child.parent = self

    @property
    def is_mesh(self):
        return self.kind in (NodeKind.MESH, NodeKind.SKINNED_MESH)

    @property
    def is_skinned(self):
        return self.kind == NodeKind.SKINNED_MESH

    @property
    def is_bone(self):
        return self.kind == NodeKind.BONE

    def add(self, *children):
        """Attach children, re-parenting them if needed"""
        for child in children:
            if child.parent is not None and child.parent is not self:
                child.parent.children.remove(child)
            child.parent = self
            if child not in self.children:
                self.children.append(child)
        return self

    def traverse(self) -> Iterator['SceneNode']:
        """Depth-first pre-order walk over this node and its descendants

        Assumes an acyclic tree; use SceneProcessor.validate_hierarchy() on
        untrusted input first.
        """
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, name):
        """First node (pre-order) with the given name, or None"""
        for node in self.traverse():
            if node.name == name:
                return node
        return None

    def local_matrix(self):
        return compose_matrix(self.position, self.rotation, self.scale)

    def reset_transform(self):
        self.position = np.zeros(3)
        self.rotation = np.zeros(3)
        self.scale = np.ones(3)

    def update_world_matrix(self, parent_world=None):
        """Recompute matrix_world for this node and all descendants"""
        stack = [(self, parent_world)]
        while stack:
            node, parent_matrix = stack.pop()
            local = node.local_matrix()
            node.matrix_world = local if parent_matrix is None else parent_matrix @ local
            stack.extend((child, node.matrix_world) for child in node.children)


def find_skinned_node(root) -> Optional[SceneNode]:
    """First skinned node (pre-order) carrying a non-empty skeleton

    Args:
        root: Scene root to search, may be None

    Returns:
        SceneNode or None
    """
    if root is None:
        return None
    for node in root.traverse():
        if node.is_skinned and node.skeleton is not None and node.skeleton.bones:
            return node
    return None


@dataclass(eq=False)
class AnimationTrack:
    """Single animated property: sample times plus flat value array

    Attributes:
        name: Target path "<node>.<property>" (e.g. "Hips.quaternion")
        times: Strictly increasing sample times in seconds
        values: Flat values, len(times) * value_size entries when valid
    """
    name: Optional[str]
    times: Optional[np.ndarray]
    values: Optional[np.ndarray]

    def __post_init__(self):
        self.times = _as_float_array(self.times)
        self.values = _as_float_array(self.values)
        if self.times is not None:
            self.times = self.times.ravel()
        if self.values is not None:
            self.values = self.values.ravel()

    @property
    def node_name(self):
        if not self.name:
            return ""
        return self.name.rsplit('.', 1)[0] if '.' in self.name else self.name

    @property
    def property_name(self):
        if not self.name or '.' not in self.name:
            return ""
        return self.name.rsplit('.', 1)[1]

    @property
    def value_size(self):
        return component_count(self.property_name)

    @property
    def expected_value_count(self):
        return 0 if self.times is None else len(self.times) * self.value_size

    def is_consistent(self):
        return (self.times is not None and self.values is not None
                and len(self.values) == self.expected_value_count)

    def clone(self):
        return copy.deepcopy(self)

    def optimize(self):
        """Remove redundant interior keyframes (linear interpolation)

        A key is redundant when its value equals both its predecessor and its
        successor. The first and last keys are always kept.
        """
        if not self.is_consistent() or len(self.times) < 3:
            return self

        size = self.value_size
        frames = self.values.reshape(-1, size)
        keep = np.ones(len(self.times), dtype=bool)
        same_as_prev = np.all(frames[1:-1] == frames[:-2], axis=1)
        same_as_next = np.all(frames[1:-1] == frames[2:], axis=1)
        keep[1:-1] = ~(same_as_prev & same_as_next)

        self.times = self.times[keep]
        self.values = frames[keep].ravel()
        return self


@dataclass(eq=False)
class AnimationClip:
    """Named set of tracks

    Attributes:
        name: Clip name
        duration: Length in seconds; negative means "derive from tracks"
        tracks: Ordered tracks
    """
    name: str = ""
    duration: float = -1.0
    tracks: List[AnimationTrack] = field(default_factory=list)

    def __post_init__(self):
        if self.duration is None or self.duration < 0:
            self.reset_duration()

    def reset_duration(self):
        """Set duration to the latest key time over all tracks"""
        end = 0.0
        for track in self.tracks:
            if track.times is not None and len(track.times):
                end = max(end, float(track.times[-1]))
        self.duration = end
        return self

    def clone(self):
        return copy.deepcopy(self)

    def optimize(self):
        for track in self.tracks:
            track.optimize()
        return self

    @property
    def track_names(self):
        return [track.name for track in self.tracks]


@dataclass
class SceneMetadata:
    """Scene-level metadata

    Attributes:
        fps: Frames per second used for time spans
        source_file_path: Path of the file the scene was read from
        source_format_name: Human-readable format name
    """
    fps: float = 30.0
    source_file_path: str = ""
    source_format_name: str = ""


@dataclass
class SceneData:
    """Complete scene data handed to exporters

    Attributes:
        root: Scene graph root
        animations: Animation clips to export alongside the scene
        metadata: Scene-level information
    """
    root: Optional[SceneNode]
    animations: List[AnimationClip] = field(default_factory=list)
    metadata: SceneMetadata = field(default_factory=SceneMetadata)

    def get_node_by_name(self, name) -> Optional[SceneNode]:
        """Find node by name

        Args:
            name: Node name to find

        Returns:
            SceneNode if found, None otherwise
        """
        if self.root is None:
            return None
        return self.root.find(name)

    def get_animation_by_name(self, name) -> Optional[AnimationClip]:
        for clip in self.animations:
            if clip.name == name:
                return clip
        return None

    def first_skeleton(self) -> Optional[Skeleton]:
        """Skeleton of the first skinned mesh in the scene, or None"""
        node = find_skinned_node(self.root)
        return node.skeleton if node is not None else None
