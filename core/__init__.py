#!/usr/bin/env python3
"""
Core Module
Format-agnostic scene/animation data structures and the export pipeline
stages that operate on them (naming, registry, retargeting, validation and
sanitation).
"""

from .animation_registry import AnimationOrigin, AnimationRegistry, ImportedAnimation, RegistryItem
from .errors import AnimationNotFoundError, ExportValidationError
from .export_validator import ExportValidator, ValidationResult
from .name_resolver import NameConfig, NameResolver
from .progress import ProgressReporter
from .retargeting import BoneMatcher, CanonicalBoneMatcher, RetargetingEngine, remap_clip_tracks
from .scene_data import (
    SceneData,
    SceneMetadata,
    SceneNode,
    NodeKind,
    Geometry,
    Material,
    Skeleton,
    AnimationClip,
    AnimationTrack,
    component_count,
    find_skinned_node,
)
from .scene_processor import SceneProcessor

__all__ = [
    'AnimationOrigin',
    'AnimationRegistry',
    'ImportedAnimation',
    'RegistryItem',
    'AnimationNotFoundError',
    'ExportValidationError',
    'ExportValidator',
    'ValidationResult',
    'NameConfig',
    'NameResolver',
    'ProgressReporter',
    'BoneMatcher',
    'CanonicalBoneMatcher',
    'RetargetingEngine',
    'remap_clip_tracks',
    'SceneData',
    'SceneMetadata',
    'SceneNode',
    'NodeKind',
    'Geometry',
    'Material',
    'Skeleton',
    'AnimationClip',
    'AnimationTrack',
    'component_count',
    'find_skinned_node',
    'SceneProcessor',
]
