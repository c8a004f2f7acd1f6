#!/usr/bin/env python3
"""
Readers Module
Scene file readers producing format-agnostic SceneData
"""

import uuid
from pathlib import Path

from core.animation_registry import ImportedAnimation

from .base_reader import BaseReader
from .json_reader import JSONSceneReader

# Supported file extensions
JSON_EXTENSIONS = {'.json'}
SUPPORTED_EXTENSIONS = JSON_EXTENSIONS


def create_reader(input_file, progress_callback=None):
    """Factory function to create appropriate reader based on file extension

    Args:
        input_file: Path to input scene file
        progress_callback: Optional function to call for progress updates

    Returns:
        BaseReader: JSONSceneReader instance

    Raises:
        ValueError: If file extension is not supported
    """
    path = Path(input_file)
    ext = path.suffix.lower()

    if ext in JSON_EXTENSIONS:
        return JSONSceneReader(input_file, progress_callback)
    else:
        raise ValueError(
            f"Unsupported file format: {ext}\n"
            f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )


def is_supported_format(input_file):
    """Check if a file has a supported format

    Args:
        input_file: Path to input scene file

    Returns:
        bool: True if format is supported
    """
    ext = Path(input_file).suffix.lower()
    return ext in SUPPORTED_EXTENSIONS


def read_imported_animations(input_file, progress_callback=None):
    """Load every clip of an animation file as ImportedAnimation items

    The file's scene root is attached as the source root of each item so the
    registry can retarget the clips.

    Args:
        input_file: Path to an animation file
        progress_callback: Optional function to call for progress updates

    Returns:
        list: ImportedAnimation items (one per clip)
    """
    reader = create_reader(input_file, progress_callback)
    scene_data = reader.extract_scene_data()
    path = Path(input_file)

    return [
        ImportedAnimation(
            id=uuid.uuid4().hex,
            name=path.name,
            clip=clip,
            url=str(path),
            source_root=scene_data.root,
        )
        for clip in scene_data.animations
    ]


__all__ = [
    'BaseReader',
    'JSONSceneReader',
    'create_reader',
    'is_supported_format',
    'read_imported_animations',
    'JSON_EXTENSIONS',
    'SUPPORTED_EXTENSIONS',
]
