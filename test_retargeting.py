#!/usr/bin/env python3
"""
Tests for RetargetingEngine and CanonicalBoneMatcher
"""

import numpy as np

from core.retargeting import BoneMatcher, CanonicalBoneMatcher, RetargetingEngine
from core.scene_data import (
    AnimationClip,
    AnimationTrack,
    Geometry,
    NodeKind,
    SceneNode,
    Skeleton,
)
from core.transforms import euler_to_quaternion


HUMANOID = ["Hips", "Spine", "Neck", "Head", "LeftArm", "RightArm"]

IDENTITY = [0.0, 0.0, 0.0, 1.0]


def make_rig(bone_names, rotations=None):
    """Root group with a skinned mesh bound to a Hips-rooted bone hierarchy

    The first bone is the root, the next three form a chain under it and
    the rest hang off the second bone.
    """
    rotations = rotations or {}
    bones = [
        SceneNode(name=name, kind=NodeKind.BONE, position=[0.0, 1.0, 0.0],
                  rotation=rotations.get(name, [0.0, 0.0, 0.0]))
        for name in bone_names
    ]
    for index, bone in enumerate(bones[1:], start=1):
        parent = bones[index - 1] if index < 4 else bones[1]
        parent.add(bone)

    mesh = SceneNode(
        name="Body",
        kind=NodeKind.SKINNED_MESH,
        geometry=Geometry(positions=[0, 0, 0, 1, 0, 0, 0, 1, 0]),
        skeleton=Skeleton(bones=bones),
    )
    root = SceneNode(name="Root")
    root.add(mesh, bones[0])
    return root, mesh.skeleton


def make_source_clip(prefix="mixamorig:"):
    return AnimationClip(name="Walk", tracks=[
        AnimationTrack(f"{prefix}Hips.quaternion", [0.0, 1.0], IDENTITY * 2),
        AnimationTrack(f"{prefix}Hips.position", [0.0, 1.0], [0, 1, 0, 0, 1, 1]),
        AnimationTrack(f"{prefix}Spine.quaternion", [0.0, 1.0], IDENTITY + [0.0, 0.0, 0.6, 0.8]),
        AnimationTrack(f"{prefix}Head.quaternion", [0.0, 1.0], IDENTITY * 2),
        AnimationTrack(f"{prefix}Tail.quaternion", [0.0, 1.0], IDENTITY * 2),
    ])


def test_missing_inputs_return_a_clone():
    engine = RetargetingEngine()
    clip = make_source_clip()
    _, skeleton = make_rig(HUMANOID)

    for result in (engine.retarget(clip, None, skeleton),
                   engine.retarget(clip, SceneNode("Source"), None)):
        assert result is not clip
        assert result.track_names == clip.track_names


def test_source_without_skinned_mesh_returns_a_clone():
    engine = RetargetingEngine()
    clip = make_source_clip()
    _, skeleton = make_rig(HUMANOID)
    source = SceneNode("Source", children=[SceneNode("Hips", kind=NodeKind.BONE)])

    result = engine.retarget(clip, source, skeleton)

    assert result is not clip
    assert result.track_names == clip.track_names


def test_below_threshold_returns_unmodified_clone():
    engine = RetargetingEngine(min_bone_matches=5)
    source_root, _ = make_rig(["mixamorig:Hips", "mixamorig:Spine", "mixamorig:Head"])
    _, destination = make_rig(["Hips", "Spine", "Head"])
    clip = make_source_clip()

    result = engine.retarget(clip, source_root, destination)

    assert result is not clip
    assert result.track_names == clip.track_names
    assert len(result.tracks) == len(clip.tracks)


def test_retarget_renames_tracks_and_strips_root_rotation():
    engine = RetargetingEngine()
    source_root, _ = make_rig([f"mixamorig:{name}" for name in HUMANOID])
    _, destination = make_rig(HUMANOID)
    clip = make_source_clip()

    result = engine.retarget(clip, source_root, destination)

    assert result.name == "Walk"
    assert sorted(result.track_names) == ["Head.quaternion", "Hips.position", "Spine.quaternion"]

    spine = next(t for t in result.tracks if t.name == "Spine.quaternion")
    np.testing.assert_allclose(spine.values, clip.tracks[2].values)

    hips = next(t for t in result.tracks if t.name == "Hips.position")
    np.testing.assert_allclose(hips.values, clip.tracks[1].values)

    # Source clip is untouched
    assert clip.tracks[0].name == "mixamorig:Hips.quaternion"


def test_rest_pose_difference_is_applied_to_rotations():
    engine = RetargetingEngine()
    rest = [0.0, 0.0, np.pi / 2]
    source_root, _ = make_rig([f"mixamorig:{name}" for name in HUMANOID])
    _, destination = make_rig(HUMANOID, rotations={"Spine": rest})
    clip = AnimationClip(name="Turn", tracks=[
        AnimationTrack("mixamorig:Spine.quaternion", [0.0], IDENTITY),
    ])

    result = engine.retarget(clip, source_root, destination)

    np.testing.assert_allclose(result.tracks[0].values, euler_to_quaternion(rest), atol=1e-9)


def test_root_position_is_scaled_by_rig_size():
    engine = RetargetingEngine()
    source_root, _ = make_rig([f"mixamorig:{name}" for name in HUMANOID])
    destination_root, destination = make_rig(HUMANOID)
    destination_root.find("Hips").position = np.array([0.0, 2.0, 0.0])
    clip = AnimationClip(name="Bounce", tracks=[
        AnimationTrack("mixamorig:Hips.position", [0.0], [0.0, 1.0, 0.0]),
        AnimationTrack("mixamorig:Spine.position", [0.0], [0.0, 1.0, 0.0]),
    ])

    result = engine.retarget(clip, source_root, destination)

    assert result.track_names == ["Hips.position"]
    np.testing.assert_allclose(result.tracks[0].values, [0.0, 2.0, 0.0])


def test_failure_in_retarget_routine_falls_back_to_clone():
    def broken(*args):
        raise RuntimeError("solver exploded")

    messages = []
    engine = RetargetingEngine(retarget_fn=broken, progress_callback=messages.append)
    source_root, _ = make_rig([f"mixamorig:{name}" for name in HUMANOID])
    _, destination = make_rig(HUMANOID)
    clip = make_source_clip()

    result = engine.retarget(clip, source_root, destination)

    assert result is not clip
    assert result.track_names == clip.track_names
    assert any("solver exploded" in message for message in messages)


def test_custom_matcher_is_used():
    class FixedMatcher(BoneMatcher):
        def build_mapping(self, destination_names, source_names):
            return {name: source_names[0] for name in destination_names}

    engine = RetargetingEngine(min_bone_matches=1, matcher=FixedMatcher())
    source_root, source = make_rig(["A", "B"])
    _, destination = make_rig(["X", "Y"])

    assert engine.build_bone_mapping(source, destination) == {"X": "A", "Y": "A"}


def test_canonical_roles():
    matcher = CanonicalBoneMatcher()

    assert matcher.role_of("Hips") == "hips"
    assert matcher.role_of("mixamorig:Spine") == "spine"
    assert matcher.role_of("mixamorig:LeftForeArm") == "left_forearm"
    assert matcher.role_of("RightUpLeg") == "right_upleg"
    assert matcher.role_of("Tail") is None


def test_exact_names_win_over_roles():
    matcher = CanonicalBoneMatcher()

    mapping = matcher.build_mapping(["Spine", "Head"], ["Spine1", "Spine", "mixamorig:Head"])

    assert mapping == {"Spine": "Spine", "Head": "mixamorig:Head"}


def test_unmatched_bones_are_left_out():
    matcher = CanonicalBoneMatcher()

    mapping = matcher.build_mapping(["Hips", "Tail"], ["pelvis"])

    assert mapping == {"Hips": "pelvis"}
