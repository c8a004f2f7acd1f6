#!/usr/bin/env python3
"""
Base Reader Module
Abstract interface for loading scene files into SceneData
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from core.progress import ProgressReporter
from core.scene_data import AnimationClip, SceneData, SceneMetadata, SceneNode


class BaseReader(ProgressReporter, ABC):
    """Abstract base class for scene file readers

    Provides a consistent interface for reading different scene formats.
    Readers only build the format-agnostic structures from core.scene_data;
    everything downstream (registry, processor, exporters) works on those.
    """

    def __init__(self, file_path: str, progress_callback=None):
        """Initialize reader with file path

        Args:
            file_path: Path to the scene file
            progress_callback: Optional function to call for progress updates
        """
        super().__init__(progress_callback)
        self.file_path = Path(file_path)
        self._root_cache: Optional[SceneNode] = None
        self._animations_cache: Optional[List[AnimationClip]] = None

    @abstractmethod
    def get_format_name(self) -> str:
        """Return human-readable format name (e.g., 'JSON Scene')"""
        pass

    @abstractmethod
    def get_scene_root(self) -> SceneNode:
        """Get the scene graph root (cached)

        Returns:
            SceneNode: Root of the loaded hierarchy
        """
        pass

    @abstractmethod
    def get_animations(self) -> List[AnimationClip]:
        """Get the animation clips stored in the file (cached)

        Returns:
            list: AnimationClip objects in file order
        """
        pass

    def detect_fps(self) -> float:
        """Frame rate stored in the file

        Returns:
            float: Frames per second, 30.0 when the file does not say
        """
        return 30.0  # Default implementation - override if supported

    def extract_scene_data(self, fps: Optional[float] = None) -> SceneData:
        """Extract the complete scene with its animations

        Args:
            fps: Frame rate override (None = use the file's frame rate)

        Returns:
            SceneData: Root, clips and metadata
        """
        root = self.get_scene_root()
        animations = self.get_animations()

        metadata = SceneMetadata(
            fps=fps if fps is not None else self.detect_fps(),
            source_file_path=str(self.file_path.resolve()),
            source_format_name=self.get_format_name(),
        )

        node_count = sum(1 for _ in root.traverse())
        self.log(f"  Loaded {self.file_path.name}: {node_count} nodes, "
                 f"{len(animations)} animation(s)")

        return SceneData(root=root, animations=animations, metadata=metadata)
