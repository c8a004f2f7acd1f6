#!/usr/bin/env python3
"""
Tests for ExportValidator
Hard issues block the export, warnings never do
"""

from core.export_validator import ExportValidator, ValidationResult
from core.scene_data import (
    AnimationClip,
    AnimationTrack,
    Geometry,
    Material,
    NodeKind,
    SceneNode,
    Skeleton,
)


def make_mesh(name="Cube", geometry="default", materials="default"):
    if geometry == "default":
        geometry = Geometry(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0], indices=[0, 1, 2])
    if materials == "default":
        materials = [Material(name="Skin")]
    return SceneNode(name=name, kind=NodeKind.MESH, geometry=geometry, materials=materials)


def make_scene(*children):
    return SceneNode(name="Scene", children=list(children))


def make_clip(name="Walk", tracks="default"):
    if tracks == "default":
        tracks = [AnimationTrack("Cube.position", [0.0, 1.0], [0, 0, 0, 1, 1, 1])]
    return AnimationClip(name=name, tracks=tracks)


def test_valid_scene_passes():
    result = ExportValidator().validate(make_scene(make_mesh()), [make_clip()])

    assert result.ok
    assert result.issues == []
    assert result.warnings == []


def test_missing_scene_is_an_issue():
    result = ExportValidator().validate(None, [make_clip()])

    assert not result.ok
    assert "Scene is missing" in result.issues


def test_mesh_without_geometry_is_an_issue():
    result = ExportValidator().validate_scene(make_scene(make_mesh(geometry=None)))

    assert not result.ok
    assert any("has no geometry" in issue for issue in result.issues)


def test_geometry_without_positions_is_an_issue():
    result = ExportValidator().validate_scene(make_scene(make_mesh(geometry=Geometry())))

    assert not result.ok
    assert any("no position attribute" in issue for issue in result.issues)


def test_indices_out_of_range_are_an_issue():
    geometry = Geometry(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0], indices=[0, 1, 3])
    result = ExportValidator().validate_scene(make_scene(make_mesh(geometry=geometry)))

    assert not result.ok
    assert any("out of range" in issue for issue in result.issues)


def test_partial_triangle_is_an_issue():
    geometry = Geometry(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0], indices=[0, 1, 2, 0])
    result = ExportValidator().validate_scene(make_scene(make_mesh(geometry=geometry)))

    assert not result.ok
    assert result.issues == ['Mesh "Cube" has 4 indices, not a multiple of 3']


def test_missing_material_is_only_a_warning():
    result = ExportValidator().validate_scene(make_scene(make_mesh(materials=[])))

    assert result.ok
    assert any('Mesh "Cube" has no material' == w for w in result.warnings)
    assert "Scene contains no materials" in result.warnings


def test_empty_scene_warns_about_geometry():
    result = ExportValidator().validate_scene(make_scene())

    assert result.ok
    assert "Scene contains no geometry" in result.warnings


def test_skinned_mesh_checks():
    validator = ExportValidator()
    no_skeleton = make_mesh(name="Body")
    no_skeleton.kind = NodeKind.SKINNED_MESH

    result = validator.validate_scene(make_scene(no_skeleton))
    assert not result.ok
    assert any("has no skeleton" in issue for issue in result.issues)

    weighted = Geometry(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0],
                        skin_indices=[0] * 12, skin_weights=[1, 0, 0, 0] * 3)
    empty_skeleton = make_mesh(name="Body", geometry=weighted)
    empty_skeleton.kind = NodeKind.SKINNED_MESH
    empty_skeleton.skeleton = Skeleton()

    result = validator.validate_scene(make_scene(empty_skeleton))
    assert not result.ok
    assert any("empty skeleton" in issue for issue in result.issues)


def test_no_animations_is_only_a_warning():
    result = ExportValidator().validate(make_scene(make_mesh()), [])

    assert result.ok
    assert "No animations to export" in result.warnings


def test_clip_without_tracks_is_an_issue():
    result = ExportValidator().validate_animations([make_clip(tracks=[])])

    assert not result.ok
    assert 'Animation "Walk" has no tracks' in result.issues


def test_track_defects_are_issues():
    tracks = [
        AnimationTrack(None, [0.0], [1.0]),
        AnimationTrack("Cube.position", None, [0, 0, 0]),
        AnimationTrack("Cube.scale", [0.0], None),
        AnimationTrack("Cube.quaternion", [0.0, 1.0], [0, 0, 0, 1, 0, 0, 0]),
    ]
    result = ExportValidator().validate_animations([make_clip(tracks=tracks)])

    assert not result.ok
    assert any("has no name" in issue for issue in result.issues)
    assert any("has no keyframes" in issue for issue in result.issues)
    assert any("has no values" in issue for issue in result.issues)
    assert any("mismatched" in issue for issue in result.issues)


def test_soft_track_problems_are_warnings():
    tracks = [AnimationTrack("Cube.position", [1.0, 0.5], [0, 0, 0, 1, 1, 1])]
    result = ExportValidator().validate_animations([make_clip(name="", tracks=tracks)])

    assert result.ok
    assert "Animation 0 has no name" in result.warnings
    assert any("non-increasing" in warning for warning in result.warnings)


def test_merge_combines_results():
    merged = ValidationResult.from_lists([], ["w1"]).merge(ValidationResult.from_lists(["i1"]))

    assert not merged.ok
    assert merged.issues == ["i1"]
    assert merged.warnings == ["w1"]
