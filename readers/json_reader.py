#!/usr/bin/env python3
"""
JSON Scene Reader Module
Loads a JSON scene description (hierarchy, geometry, materials, skeletons
and animation clips) into SceneData
"""

import json
from typing import List

from core.scene_data import (
    AnimationClip,
    AnimationTrack,
    Geometry,
    Material,
    NodeKind,
    SceneNode,
    Skeleton,
)
from .base_reader import BaseReader


class JSONSceneReader(BaseReader):
    """Reader for .json scene descriptions

    Document layout:
        {"fps": 30,
         "scene": {node},
         "animations": [{"name", "duration", "tracks": [{"name", "times", "values"}]}]}

    Node layout:
        {"name", "type": "group|mesh|skinned_mesh|bone", "position", "rotation",
         "scale", "geometry", "materials", "skeleton": {"bones": [names]},
         "children": [...]}

    Skeleton bones are referenced by name and resolved against the whole
    hierarchy once it is built.
    """

    def __init__(self, file_path: str, progress_callback=None):
        super().__init__(file_path, progress_callback)
        self._document = None

    def get_format_name(self) -> str:
        return "JSON Scene"

    def _load(self):
        if self._document is None:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    document = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Malformed scene file {self.file_path.name}: {e}")
            if not isinstance(document, dict):
                raise ValueError(f"Scene file {self.file_path.name} must contain a JSON object")
            self._document = document
        return self._document

    def detect_fps(self) -> float:
        return float(self._load().get('fps', 30.0))

    def get_scene_root(self) -> SceneNode:
        if self._root_cache is None:
            document = self._load()
            scene = document.get('scene')
            if scene is None:
                # Animation-only files still get a root to hang clips off
                self._root_cache = SceneNode(name=self.file_path.stem)
            else:
                pending_skeletons = []
                root = self._build_node(scene, pending_skeletons)
                self._link_skeletons(root, pending_skeletons)
                self._root_cache = root
        return self._root_cache

    def get_animations(self) -> List[AnimationClip]:
        if self._animations_cache is None:
            clips = []
            for index, entry in enumerate(self._load().get('animations', [])):
                tracks = [
                    AnimationTrack(
                        name=track.get('name'),
                        times=track.get('times'),
                        values=track.get('values'),
                    )
                    for track in entry.get('tracks', [])
                ]
                clips.append(AnimationClip(
                    name=entry.get('name', ''),
                    duration=float(entry['duration']) if entry.get('duration') is not None else -1.0,
                    tracks=tracks,
                ))
            self._animations_cache = clips
        return self._animations_cache

    # === HIERARCHY ===

    def _build_node(self, data, pending_skeletons):
        """Build a node and its subtree (iteratively, parents before children)"""
        root = None
        stack = [(data, None)]
        while stack:
            entry, parent = stack.pop()
            node = self._parse_node(entry, pending_skeletons)
            if parent is None:
                root = node
            else:
                parent.add(node)
            stack.extend((child, node) for child in reversed(entry.get('children', [])))
        return root

    def _parse_node(self, entry, pending_skeletons):
        if not isinstance(entry, dict):
            raise ValueError(f"Scene node must be an object, got {type(entry).__name__}")

        type_name = entry.get('type', 'group')
        try:
            kind = NodeKind(type_name)
        except ValueError:
            choices = ', '.join(k.value for k in NodeKind)
            raise ValueError(f"Unknown node type '{type_name}' (expected one of: {choices})")

        node = SceneNode(
            name=entry.get('name', ''),
            kind=kind,
            position=entry.get('position', [0.0, 0.0, 0.0]),
            rotation=entry.get('rotation', [0.0, 0.0, 0.0]),
            scale=entry.get('scale', [1.0, 1.0, 1.0]),
        )

        if node.is_mesh:
            if 'geometry' in entry:
                node.geometry = self._parse_geometry(entry['geometry'])
            node.materials = [self._parse_material(m) for m in entry.get('materials', [])]

        if 'skeleton' in entry:
            pending_skeletons.append((node, entry['skeleton'].get('bones', [])))

        return node

    def _parse_geometry(self, data):
        return Geometry(
            positions=data.get('positions'),
            normals=data.get('normals'),
            uvs=data.get('uvs'),
            indices=data.get('indices'),
            skin_indices=data.get('skin_indices'),
            skin_weights=data.get('skin_weights'),
        )

    def _parse_material(self, data):
        material = Material(
            name=data.get('name', ''),
            opacity=float(data.get('opacity', 1.0)),
            transparent=bool(data.get('transparent', False)),
            alpha_test=float(data.get('alpha_test', 0.0)),
        )
        if 'color' in data:
            material.color = tuple(float(c) for c in data['color'])
        return material

    def _link_skeletons(self, root, pending_skeletons):
        """Resolve skeleton bone names to bone nodes of the built hierarchy"""
        bones_by_name = {}
        for node in root.traverse():
            if node.is_bone and node.name and node.name not in bones_by_name:
                bones_by_name[node.name] = node

        for node, bone_names in pending_skeletons:
            bones = []
            for bone_name in bone_names:
                bone = bones_by_name.get(bone_name)
                if bone is None:
                    raise ValueError(f"Skeleton of '{node.name}' references unknown bone '{bone_name}'")
                bones.append(bone)
            node.skeleton = Skeleton(bones=bones)
