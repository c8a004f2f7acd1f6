#!/usr/bin/env python3
"""
End-to-end tests: JSON model + JSON animation files -> merged FBX
"""

import json

import pytest

from animation_merger import AnimationMergeConverter
from fbxmerge import main
from readers import JSONSceneReader, create_reader, is_supported_format, read_imported_animations
from test_fbx_binary_writer import find_children, read_fbx_binary


SEP = "\x00\x01"

HUMANOID = ["Hips", "Spine", "Neck", "Head", "LeftArm", "RightArm"]

IDENTITY = [0.0, 0.0, 0.0, 1.0]


def bone_tree(prefix=""):
    """Hips > Spine > (Neck > Head, LeftArm, RightArm)"""
    def bone(name, children=()):
        return {"name": f"{prefix}{name}", "type": "bone",
                "position": [0, 1, 0], "children": list(children)}

    return bone("Hips", [
        bone("Spine", [
            bone("Neck", [bone("Head")]),
            bone("LeftArm"),
            bone("RightArm"),
        ]),
    ])


def character(prefix="", animations=(), with_mesh=True):
    children = [bone_tree(prefix)]
    if with_mesh:
        children.insert(0, {
            "name": "Body",
            "type": "skinned_mesh",
            "geometry": {
                "positions": [0, 0, 0, 1, 0, 0, 0, 1, 0],
                "indices": [0, 1, 2],
                "skin_indices": [0, 0, 0, 0] * 3,
                "skin_weights": [1, 0, 0, 0] * 3,
            },
            "materials": [{"name": "Skin", "color": [0.8, 0.6, 0.5]}],
            "skeleton": {"bones": [f"{prefix}{name}" for name in HUMANOID]},
        })
    return {
        "fps": 24,
        "scene": {"name": "Character", "type": "group", "children": children},
        "animations": list(animations),
    }


def write_json(path, document):
    path.write_text(json.dumps(document), encoding='utf-8')
    return path


@pytest.fixture
def files(tmp_path):
    idle = {"name": "Idle", "duration": 1.0, "tracks": [
        {"name": "Head.quaternion", "times": [0.0, 1.0], "values": IDENTITY + [0.0, 0.0, 0.6, 0.8]},
    ]}
    walk = {"name": "mixamorig:Walk", "tracks": [
        {"name": "mixamorig:Hips.quaternion", "times": [0.0, 0.5], "values": IDENTITY * 2},
        {"name": "mixamorig:Hips.position", "times": [0.0, 0.5], "values": [0, 1, 0, 0, 1, 1]},
        {"name": "mixamorig:Spine.quaternion", "times": [0.0, 0.5], "values": IDENTITY * 2},
    ]}
    model = write_json(tmp_path / "hero.json", character(animations=[idle]))
    animation = write_json(tmp_path / "walk.json", character("mixamorig:", animations=[walk]))
    return model, animation


def read_output(path):
    _, nodes = read_fbx_binary(path.read_bytes())
    return {node['name']: node for node in nodes}


def test_reader_builds_scene_data(files):
    model, _ = files
    reader = create_reader(model)

    scene_data = reader.extract_scene_data()

    assert isinstance(reader, JSONSceneReader)
    assert scene_data.metadata.fps == 24
    assert scene_data.metadata.source_format_name == "JSON Scene"
    skeleton = scene_data.first_skeleton()
    assert skeleton.bone_names == HUMANOID
    assert skeleton.bones[0] is scene_data.get_node_by_name("Hips")
    assert skeleton.get_bone_by_name("Head") is scene_data.get_node_by_name("Head")
    assert skeleton.get_bone_by_name("Tail") is None
    assert scene_data.get_node_by_name("Tail") is None
    assert [clip.name for clip in scene_data.animations] == ["Idle"]
    assert scene_data.get_animation_by_name("Idle") is scene_data.animations[0]
    assert scene_data.get_animation_by_name("Run") is None


def test_read_imported_animations_attaches_source_root(files):
    _, animation = files

    (item,) = read_imported_animations(animation)

    assert item.name == "walk.json"
    assert item.clip.name == "mixamorig:Walk"
    assert item.source_root.find("mixamorig:Hips") is not None


def test_supported_formats():
    assert is_supported_format("hero.json")
    assert is_supported_format("HERO.JSON")
    assert not is_supported_format("hero.abc")
    assert not is_supported_format("hero")


def test_reader_errors(tmp_path):
    with pytest.raises(ValueError):
        create_reader(tmp_path / "scene.abc")

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding='utf-8')
    with pytest.raises(ValueError):
        create_reader(broken).get_scene_root()

    dangling = character()
    dangling["scene"]["children"][0]["skeleton"]["bones"].append("Tail")
    with pytest.raises(ValueError):
        create_reader(write_json(tmp_path / "dangling.json", dangling)).get_scene_root()

    bad_type = character()
    bad_type["scene"]["type"] = "camera"
    with pytest.raises(ValueError):
        create_reader(write_json(tmp_path / "camera.json", bad_type)).get_scene_root()


def test_merge_retargets_and_exports(files, tmp_path):
    model, animation = files
    converter = AnimationMergeConverter()

    results = converter.convert(model, [animation], tmp_path / "out", "Hero")

    assert results['success']
    assert results['animations'] == ["🎬 Idle", "🎭 Mixamo: Walk"]

    walk = converter.registry.get_by_name("🎭 Mixamo: Walk").clip
    assert sorted(walk.track_names) == ["Hips.position", "Spine.quaternion"]

    sections = read_output(tmp_path / "out" / "Hero.fbx")
    objects = sections["Objects"]
    stacks = [n['properties'][1] for n in find_children(objects, "AnimationStack")]
    assert stacks == [f"🎬 Idle{SEP}AnimStack", f"🎭 Mixamo: Walk{SEP}AnimStack"]
    assert len(find_children(objects, "AnimationCurveNode")) == 3
    assert len(find_children(sections["Takes"], "Take")) == 2


def test_merge_without_retargeting_keeps_source_tracks(files, tmp_path):
    model, animation = files
    converter = AnimationMergeConverter()

    results = converter.convert(model, [animation], tmp_path, "Hero", retarget=False)

    assert results['success']
    walk = converter.registry.get_by_name("🎭 Mixamo: Walk").clip
    assert walk.track_names[0] == "mixamorig:Hips.quaternion"

    # Source bone names do not exist in the model, so only Idle is animated
    sections = read_output(tmp_path / "Hero.fbx")
    assert len(find_children(sections["Objects"], "AnimationCurveNode")) == 1


def test_merge_reports_missing_model(tmp_path):
    results = AnimationMergeConverter().convert(tmp_path / "missing.json", [], tmp_path, "Hero")

    assert not results['success']
    assert "Conversion failed" in results['message']


def test_merge_reports_invalid_model(tmp_path):
    document = character()
    del document["scene"]["children"][0]["geometry"]["positions"]
    model = write_json(tmp_path / "hero.json", document)

    results = AnimationMergeConverter().convert(model, [], tmp_path / "out", "Hero")

    assert not results['success']
    assert results['fbx']['issues']
    assert not (tmp_path / "out" / "Hero.fbx").exists()


def test_command_line(files, tmp_path):
    model, animation = files
    output_dir = tmp_path / "cli"

    main([str(model), "--animations", str(animation), "--output-dir", str(output_dir)])

    assert (output_dir / "hero.fbx").exists()


def test_command_line_rejects_unknown_format(tmp_path):
    model = tmp_path / "hero.abc"
    model.write_bytes(b"")

    with pytest.raises(SystemExit):
        main([str(model), "--output-dir", str(tmp_path)])
