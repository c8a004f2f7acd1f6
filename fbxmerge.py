#!/usr/bin/env python3
"""
FBX Animation Merge - Command Line Version
Merge a model's animations with imported animation files into one FBX binary
"""

import argparse
import sys
from pathlib import Path

from animation_merger import AnimationMergeConverter
from readers import SUPPORTED_EXTENSIONS, is_supported_format


def _check_input(path_str):
    path = Path(path_str)
    if not path.exists():
        print(f"Error: Input file not found: {path_str}", file=sys.stderr)
        sys.exit(1)
    if not is_supported_format(path):
        print(f"Error: Unsupported file format: {path.suffix.lower()}", file=sys.stderr)
        print(f"Supported formats: {', '.join(sorted(SUPPORTED_EXTENSIONS))}", file=sys.stderr)
        sys.exit(1)
    return path


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog='fbxmerge',
        description='Merge a model and imported animation clips into a binary FBX file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export a model with its own animations
  python fbxmerge.py character.json --output-dir ./output

  # Add animations from other files, retargeted onto the model's skeleton
  python fbxmerge.py character.json --animations walk.json run.json --output-dir ./output

  # Keep imported clips untouched
  python fbxmerge.py character.json --animations dance.json --no-retarget --output-dir ./output

Supported input formats:
  .json    - JSON scene description (hierarchy, geometry, skeleton, clips)
        """
    )

    parser.add_argument('model', type=str, help='Model scene file')
    parser.add_argument('--animations', nargs='+', default=[],
                       help='Animation files to import')
    parser.add_argument('--output-dir', type=str, required=True,
                       help='Output directory')
    parser.add_argument('--shot-name', type=str,
                       help='Output file name (default: derived from model filename)')
    parser.add_argument('--fps', type=float,
                       help='Frame rate (default: taken from the model file)')
    parser.add_argument('--min-bone-matches', type=int, default=5,
                       help='Mapped bones required to retarget a clip (default: 5)')
    parser.add_argument('--no-retarget', action='store_true',
                       help='Import animations without retargeting')

    args = parser.parse_args(argv)

    model_path = _check_input(args.model)
    animation_paths = [_check_input(a) for a in args.animations]

    shot_name = args.shot_name or model_path.stem

    # Converter logs to stdout itself
    converter = AnimationMergeConverter(min_bone_matches=args.min_bone_matches)

    try:
        results = converter.convert(
            model_file=str(model_path),
            animation_files=[str(p) for p in animation_paths],
            output_dir=args.output_dir,
            shot_name=shot_name,
            retarget=not args.no_retarget,
            fps=args.fps,
        )
    except Exception as e:
        print(f"\n✗ Conversion failed: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)

    if results.get('success'):
        print("\n" + "="*60)
        print("✓ Export completed!")
        print(f"✓ FBX: {results['fbx']['fbx_file']}")
        for name in results['animations']:
            print(f"  - {name}")
        for warning in results['fbx'].get('warnings', []):
            print(f"  Warning: {warning}")
        print("="*60)
    else:
        print("\n✗ Export failed:", file=sys.stderr)
        print(f"   {results.get('message', 'Check log above')}", file=sys.stderr)
        for issue in results.get('fbx', {}).get('issues', []):
            print(f"   - {issue}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
