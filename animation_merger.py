#!/usr/bin/env python3
"""
Animation Merge Converter - Main Orchestrator Module
Merges a model's own animations with animations imported from other files
and exports the result as a single FBX binary file

Pipeline: readers build SceneData, the AnimationRegistry names (and
retargets) every clip, the FBXExporter validates, sanitizes and serializes.
"""

from pathlib import Path

from core.animation_registry import AnimationRegistry
from core.name_resolver import NameResolver
from core.retargeting import RetargetingEngine
from core.scene_data import SceneData
from exporters.fbx_exporter import FBXExporter
from readers import create_reader, read_imported_animations


class AnimationMergeConverter:
    """Model + animation files to FBX converter (orchestrator/facade)

    This class coordinates the merge process:
    1. Read the model file (via readers module)
    2. Register its own clips as native animations
    3. Read every animation file and register its clips as imported
       animations, retargeted onto the model's skeleton
    4. Export model + all registered clips (via FBXExporter)
    """

    def __init__(self, progress_callback=None, min_bone_matches=5, name_resolver=None):
        """Initialize converter

        Args:
            progress_callback: Optional function to call for progress updates
                              Signature: callback(message: str) -> None
            min_bone_matches: Mapped bones required before retargeting a clip
            name_resolver: NameResolver used for display names (new one if None)
        """
        self.progress_callback = progress_callback
        self.registry = AnimationRegistry(
            name_resolver=name_resolver or NameResolver(),
            retargeting_engine=RetargetingEngine(
                min_bone_matches=min_bone_matches,
                progress_callback=progress_callback,
            ),
            progress_callback=progress_callback,
        )

    def log(self, message):
        """Send progress updates to callback"""
        if self.progress_callback:
            self.progress_callback(message)
        print(message)

    def convert(self, model_file, animation_files, output_dir, shot_name=None,
                retarget=True, fps=None):
        """Merge animations into a model and export FBX

        Args:
            model_file: Scene file with the model (and its own clips)
            animation_files: Scene files whose clips are imported
            output_dir: Output directory
            shot_name: Output file stem (default: model file stem)
            retarget: Retarget imported clips onto the model's skeleton
            fps: Frame rate override (None = model file's frame rate)

        Returns:
            dict: Results with keys:
                - 'success': bool
                - 'message': Summary message
                - 'animations': Display names of all registered clips
                - 'fbx': FBX export results
        """
        try:
            model_path = Path(model_file)
            shot_name = shot_name or model_path.stem

            self.log(f"\n{'='*60}")
            self.log(f"FBX Animation Merge")
            self.log(f"{'='*60}")
            self.log(f"Model: {model_file}")
            self.log(f"Animations: {len(animation_files)} file(s)")
            self.log(f"Output: {output_dir}")
            self.log(f"Shot: {shot_name}")
            self.log(f"{'='*60}\n")

            # Step 1: Read model
            self.log("Step 1/4: Reading model file...")
            reader = create_reader(model_file, self.progress_callback)
            model_data = reader.extract_scene_data(fps)

            # Step 2: Register native clips
            self.log("\nStep 2/4: Registering model animations...")
            self.registry.clear()
            self.registry.add_native(model_data.animations)

            # Step 3: Import and retarget
            self.log("\nStep 3/4: Importing animations...")
            imported = []
            for animation_file in animation_files:
                items = read_imported_animations(animation_file, self.progress_callback)
                if not retarget:
                    for item in items:
                        item.source_root = None
                imported.extend(items)

            skeleton = model_data.first_skeleton() if retarget else None
            if retarget and skeleton is None and imported:
                self.log("  Model has no skeleton, importing clips without retargeting")
            self.registry.add_imported(imported, destination_skeleton=skeleton)

            for item in self.registry.items:
                self.log(f"  - {item.display_name} ({item.origin.value}, "
                         f"{len(item.clip.tracks)} tracks)")

            # Step 4: Export
            self.log("\nStep 4/4: Exporting FBX...")
            scene_data = SceneData(
                root=model_data.root,
                animations=self.registry.all_clips(),
                metadata=model_data.metadata,
            )
            exporter = FBXExporter(fps=model_data.metadata.fps,
                                   progress_callback=self.progress_callback)
            fbx_result = exporter.export(scene_data, output_dir, shot_name)

            results = {
                'success': fbx_result.get('success', False),
                'message': fbx_result.get('message', ''),
                'animations': self.registry.all_names(),
                'fbx': fbx_result,
            }

            status = "✓" if results['success'] else "✗"
            self.log(f"\n{'='*60}")
            self.log(f"  {status} FBX: {results['message']}")
            self.log(f"{'='*60}\n")

            return results

        except Exception as e:
            self.log(f"\nERROR: {str(e)}")
            import traceback
            self.log(traceback.format_exc())
            return {
                'success': False,
                'message': f"Conversion failed: {str(e)}",
                'animations': [],
            }
