#!/usr/bin/env python3
"""
Exporters Module
Format exporters working on SceneData
"""

from .base_exporter import BaseExporter
from .fbx_binary_writer import FBXBinaryWriter, FBXNode, FBXProperty, PropertyType
from .fbx_exporter import ExportResult, FBXExporter

__all__ = [
    'BaseExporter',
    'FBXBinaryWriter',
    'FBXNode',
    'FBXProperty',
    'PropertyType',
    'ExportResult',
    'FBXExporter',
]
