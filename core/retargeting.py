#!/usr/bin/env python3
"""
Retargeting Module
Remaps imported animation clips onto a destination skeleton

The engine builds a destination -> source bone-name mapping, decides whether
enough bones matched to attempt a retarget, delegates the track remapping to
a pluggable routine and strips root rotation tracks from the result. Any
failure degrades to an unmodified copy of the clip.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .progress import ProgressReporter
from .scene_data import AnimationClip, AnimationTrack, find_skinned_node
from .transforms import euler_to_quaternion, quaternion_inverse, quaternion_multiply


# Canonical humanoid roles and their known aliases (lower case).
# Order matters for the containment pass: more specific roles come first.
CANONICAL_BONES = {
    'hips': ('hips', 'pelvis', 'hip'),
    'spine2': ('spine2', 'chest', 'upperchest', 'spine_03'),
    'spine1': ('spine1', 'spine_02', 'midspine'),
    'spine': ('spine', 'spine_01', 'lowerspine'),
    'neck': ('neck', 'neck_01'),
    'head': ('head',),
    'left_shoulder': ('leftshoulder', 'shoulder_l', 'l_shoulder', 'shoulder.l', 'clavicle_l', 'lcollar'),
    'left_arm': ('leftarm', 'leftupperarm', 'upperarm_l', 'l_upperarm', 'upper_arm.l', 'lshldr'),
    'left_forearm': ('leftforearm', 'leftlowerarm', 'lowerarm_l', 'l_forearm', 'forearm.l', 'lforearm'),
    'left_hand': ('lefthand', 'hand_l', 'l_hand', 'hand.l', 'lhand'),
    'right_shoulder': ('rightshoulder', 'shoulder_r', 'r_shoulder', 'shoulder.r', 'clavicle_r', 'rcollar'),
    'right_arm': ('rightarm', 'rightupperarm', 'upperarm_r', 'r_upperarm', 'upper_arm.r', 'rshldr'),
    'right_forearm': ('rightforearm', 'rightlowerarm', 'lowerarm_r', 'r_forearm', 'forearm.r', 'rforearm'),
    'right_hand': ('righthand', 'hand_r', 'r_hand', 'hand.r', 'rhand'),
    'left_upleg': ('leftupleg', 'leftupperleg', 'leftthigh', 'thigh_l', 'l_thigh', 'thigh.l'),
    'left_leg': ('leftleg', 'leftlowerleg', 'leftshin', 'calf_l', 'l_calf', 'shin.l'),
    'left_foot': ('leftfoot', 'foot_l', 'l_foot', 'foot.l', 'lfoot'),
    'right_upleg': ('rightupleg', 'rightupperleg', 'rightthigh', 'thigh_r', 'r_thigh', 'thigh.r'),
    'right_leg': ('rightleg', 'rightlowerleg', 'rightshin', 'calf_r', 'r_calf', 'shin.r'),
    'right_foot': ('rightfoot', 'foot_r', 'r_foot', 'foot.r', 'rfoot'),
}

# Root bone variants whose rotation tracks are dropped after retargeting
ROOT_BONE_NAMES = (
    'Hips', 'hips', 'mixamorigHips', 'mixamorig:Hips',
    'Root', 'root', 'Pelvis', 'pelvis',
)

ROTATION_PROPERTIES = ('quaternion', 'rotation')


class BoneMatcher(ABC):
    """Strategy that pairs destination bones with source bones"""

    @abstractmethod
    def build_mapping(self, destination_names: Sequence[str],
                      source_names: Sequence[str]) -> Dict[str, str]:
        """Map destination bone name -> source bone name

        Args:
            destination_names: Bone names of the skeleton receiving the animation
            source_names: Bone names of the skeleton the clip was authored for

        Returns:
            dict: Only matched destination bones appear as keys
        """
        pass


class CanonicalBoneMatcher(BoneMatcher):
    """Exact-name match first, then canonical humanoid role aliases

    A name plays a role when, case-insensitively, it contains one of the
    role's aliases or is contained by one. Exact alias equality is preferred
    over containment so "Spine" resolves to the spine role rather than to
    "spine1".
    """

    def __init__(self, canonical_bones=None):
        self.canonical_bones = canonical_bones or CANONICAL_BONES

    @staticmethod
    def _contains(name, alias):
        lowered = name.lower()
        return alias in lowered or lowered in alias

    def role_of(self, name) -> Optional[str]:
        if not name:
            return None
        lowered = name.lower()
        for role, aliases in self.canonical_bones.items():
            if lowered in aliases:
                return role
        for role, aliases in self.canonical_bones.items():
            if any(self._contains(name, alias) for alias in aliases):
                return role
        return None

    def find_bone_for_role(self, role, names) -> Optional[str]:
        aliases = self.canonical_bones.get(role, ())
        for name in names:
            if name and name.lower() in aliases:
                return name
        for name in names:
            if name and any(self._contains(name, alias) for alias in aliases):
                return name
        return None

    def build_mapping(self, destination_names, source_names):
        source_names = [name for name in source_names if name]
        source_set = set(source_names)
        mapping = {}

        for dest_name in destination_names:
            if not dest_name:
                continue
            if dest_name in source_set:
                mapping[dest_name] = dest_name
                continue

            role = self.role_of(dest_name)
            if role is None:
                continue
            source_name = self.find_bone_for_role(role, source_names)
            if source_name is not None:
                mapping[dest_name] = source_name

        return mapping


def _bones_under(root_bone):
    if root_bone is None:
        return {}
    return {node.name: node for node in root_bone.traverse() if node.is_bone and node.name}


def remap_clip_tracks(destination_root_bone, source_root_bone, source_clip, bone_mapping):
    """Default skeletal retargeting routine

    Re-addresses the clip's tracks to destination bone names:
    - quaternion tracks are corrected by the rest-pose rotation difference
      (q_dest_rest * q_src_rest^-1 * q)
    - position tracks are kept only for the destination root bone, scaled by
      the ratio of the rigs' root rest offsets
    - other tracks are copied as-is
    Source bones with no mapping are dropped.

    Args:
        destination_root_bone: Root bone node of the destination skeleton
        source_root_bone: Root bone node of the source skeleton
        source_clip: AnimationClip addressing source bone names
        bone_mapping: Destination bone name -> source bone name

    Returns:
        AnimationClip: New clip addressing destination bone names
    """
    dest_bones = _bones_under(destination_root_bone)
    source_bones = _bones_under(source_root_bone)

    tracks_by_bone: Dict[str, List[AnimationTrack]] = {}
    for track in source_clip.tracks:
        tracks_by_bone.setdefault(track.node_name, []).append(track)

    root_ratio = 1.0
    if destination_root_bone is not None and source_root_bone is not None:
        source_length = float(np.linalg.norm(source_root_bone.position))
        if source_length > 1e-8:
            root_ratio = float(np.linalg.norm(destination_root_bone.position)) / source_length

    root_name = destination_root_bone.name if destination_root_bone is not None else None
    tracks = []

    for dest_name, source_name in bone_mapping.items():
        for track in tracks_by_bone.get(source_name, []):
            prop = track.property_name
            values = track.values.copy() if track.values is not None else None

            if prop == 'quaternion' and track.is_consistent():
                dest_rest = dest_bones.get(dest_name)
                source_rest = source_bones.get(source_name)
                dest_q = euler_to_quaternion(dest_rest.rotation) if dest_rest is not None else np.array([0.0, 0.0, 0.0, 1.0])
                source_q = euler_to_quaternion(source_rest.rotation) if source_rest is not None else np.array([0.0, 0.0, 0.0, 1.0])
                offset = quaternion_multiply(dest_q, quaternion_inverse(source_q))
                values = quaternion_multiply(offset, track.values.reshape(-1, 4)).ravel()
            elif prop == 'position':
                if dest_name != root_name:
                    continue
                values = values * root_ratio

            tracks.append(AnimationTrack(
                name=f"{dest_name}.{prop}" if prop else dest_name,
                times=track.times.copy() if track.times is not None else None,
                values=values,
            ))

    return AnimationClip(name=source_clip.name, duration=source_clip.duration, tracks=tracks)


class RetargetingEngine(ProgressReporter):
    """Produces destination-compatible clips from imported clips

    Retargeting is attempted only when at least `min_bone_matches` destination
    bones found a source partner; otherwise, or on any failure, the clip is
    returned as an unmodified copy.
    """

    def __init__(self, min_bone_matches=5, matcher: Optional[BoneMatcher] = None,
                 retarget_fn: Optional[Callable] = None, root_bone_names=ROOT_BONE_NAMES,
                 progress_callback=None):
        """Initialize engine

        Args:
            min_bone_matches: Minimum mapped bone pairs required to retarget
            matcher: BoneMatcher strategy (CanonicalBoneMatcher by default)
            retarget_fn: Routine(dest_root_bone, source_root_bone, clip, mapping) -> clip
            root_bone_names: Root bone variants whose rotation tracks are dropped
            progress_callback: Optional function to call for progress updates
        """
        super().__init__(progress_callback)
        self.min_bone_matches = min_bone_matches
        self.matcher = matcher or CanonicalBoneMatcher()
        self.retarget_fn = retarget_fn or remap_clip_tracks
        self.root_bone_names = set(root_bone_names)

    def build_bone_mapping(self, source_skeleton, destination_skeleton):
        return self.matcher.build_mapping(destination_skeleton.bone_names,
                                          source_skeleton.bone_names)

    def retarget(self, source_clip, source_root, destination_skeleton):
        """Retarget a clip onto the destination skeleton

        Args:
            source_clip: Imported AnimationClip
            source_root: Scene root the clip was loaded with (may be None)
            destination_skeleton: Skeleton receiving the animation (may be None)

        Returns:
            AnimationClip: Retargeted clip, or an unmodified copy on fallback
        """
        if source_root is None or destination_skeleton is None:
            return source_clip.clone()

        skinned = find_skinned_node(source_root)
        if skinned is None:
            self.log(f"  No skinned mesh in source of '{source_clip.name}', keeping clip as-is")
            return source_clip.clone()

        try:
            mapping = self.build_bone_mapping(skinned.skeleton, destination_skeleton)
            if len(mapping) < self.min_bone_matches:
                self.log(f"  Only {len(mapping)} bones matched for '{source_clip.name}' "
                         f"(need {self.min_bone_matches}), keeping clip as-is")
                return source_clip.clone()

            self.log(f"  Retargeting '{source_clip.name}' ({len(mapping)} bones mapped)")
            result = self.retarget_fn(
                destination_skeleton.root_bone(),
                skinned.skeleton.root_bone(),
                source_clip,
                mapping,
            )
            result.name = source_clip.name
            return self.strip_root_rotation(result)

        except Exception as e:
            self.log(f"  WARNING: Retargeting failed for '{source_clip.name}': {e}")
            return source_clip.clone()

    def strip_root_rotation(self, clip):
        """Drop rotation tracks that animate a root bone variant"""
        kept = []
        for track in clip.tracks:
            if (track.node_name in self.root_bone_names
                    and track.property_name in ROTATION_PROPERTIES):
                continue
            kept.append(track)
        clip.tracks = kept
        return clip
