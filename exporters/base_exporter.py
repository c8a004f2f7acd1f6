#!/usr/bin/env python3
"""
Base Exporter Module
Abstract base class ensuring consistent interface across all exporters

Exporters receive SceneData (scene root + animation clips) rather than
reader objects, so they never depend on the input format.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from core.progress import ProgressReporter

if TYPE_CHECKING:
    from core.scene_data import SceneData


class BaseExporter(ProgressReporter, ABC):
    """Abstract base class for all format exporters

    Provides consistent interface and common utilities for all exporters.

    Key principles:
    - Single Responsibility: Each exporter handles ONE format
    - Consistent Interface: All exporters implement the same methods
    - Shared Utilities: Common functionality (logging, path validation) provided here
    - Never raises from export(): failures come back as a result dict
    """

    def __init__(self, progress_callback=None):
        """Initialize exporter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
        """
        super().__init__(progress_callback)

    @abstractmethod
    def export(self, scene_data: 'SceneData', output_path, shot_name):
        """Export scene data to specific format

        Args:
            scene_data: SceneData instance with the scene root, the animation
                        clips to write and metadata
            output_path: Output directory path (Path object or string)
            shot_name: Shot name for naming files

        Returns:
            dict: Export results with format-specific keys
                  Should include at least:
                  - 'success': bool
                  - 'files': list of created file paths
                  - 'message': str status message
                  - 'issues': list of blocking problems (empty on success)
                  - 'warnings': list of non-blocking problems
        """
        pass

    @abstractmethod
    def get_format_name(self):
        """Return human-readable format name

        Returns:
            str: Format name (e.g., "FBX")
        """
        pass

    @abstractmethod
    def get_file_extension(self):
        """Return primary file extension for this format

        Returns:
            str: File extension without dot (e.g., "fbx")
        """
        pass

    def validate_output_path(self, output_path):
        """Validate and create output directory if needed

        Args:
            output_path: Directory path to validate

        Returns:
            Path: Validated Path object

        Raises:
            ValueError: If path is invalid
        """
        path = Path(output_path)

        # Create directory if it doesn't exist
        try:
            path.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            raise ValueError(f"Cannot create output directory {path}: {e}")

        # Verify we can write to the directory
        if not path.is_dir():
            raise ValueError(f"Output path is not a directory: {path}")

        return path

    def get_export_summary(self, result):
        """Generate human-readable summary of export results

        Args:
            result: Export result dict from export() method

        Returns:
            str: Formatted summary text
        """
        lines = []
        if result.get('success'):
            lines.append(f"✓ {self.get_format_name()} Export Complete")
        else:
            lines.append(f"✗ {self.get_format_name()} Export Failed")

        if 'files' in result:
            files = result['files']
            if isinstance(files, list):
                lines.append(f"  Files created: {len(files)}")
                for file_path in files:
                    lines.append(f"    - {Path(file_path).name}")
            else:
                lines.append(f"    - {Path(files).name}")

        if 'message' in result:
            lines.append(f"  {result['message']}")

        for issue in result.get('issues', []):
            lines.append(f"  Issue: {issue}")
        for warning in result.get('warnings', []):
            lines.append(f"  Warning: {warning}")

        return "\n".join(lines)
