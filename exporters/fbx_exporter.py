"""
FBX binary exporter

Pure Python FBX 7.4 binary writer, no external SDK required.

Export pipeline:
- Validation: ExportValidator + SceneProcessor.validate_hierarchy(); any
  hard issue aborts before a single byte is produced
- Sanitation: SceneProcessor works on copies of the scene and the clips
- Node tree: header extension, global settings, documents, references,
  definitions, objects, connections and takes
- Serialization: FBXBinaryWriter

Export Strategy:
- Groups: Null models with a Null node attribute
- Bones: LimbNode models with a Skeleton node attribute
- Meshes: Mesh models with Geometry (vertices, triangles, normals, UVs)
  and one Material object per material
- Animations: one AnimationStack + AnimationLayer per clip, one
  AnimationCurveNode per animated T/R/S channel and one AnimationCurve per
  axis. Quaternion tracks are converted to XYZ Euler degrees.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

import numpy as np

from core.errors import ExportValidationError
from core.export_validator import ExportValidator
from core.scene_data import SceneData
from core.scene_processor import SceneProcessor
from core.transforms import quaternions_to_euler
from exporters.base_exporter import BaseExporter
from exporters.fbx_binary_writer import FBX_VERSION, FBXBinaryWriter, FBXNode, FBXProperty


# FBX time unit: 46186158000 ticks per second
KTIME_PER_SECOND = 46186158000

# Reserved for the Document object; model ids start right after it
DOCUMENT_ID = 1000000000

# FBX TimeMode enum value for a custom frame rate
TIME_MODE_CUSTOM = 14

# Binary files store "Class::Name" as "Name\x00\x01Class"
NAME_SEPARATOR = "\x00\x01"

# Track property -> (curve node name, model property, value columns)
CHANNELS = {
    'position': ('T', 'Lcl Translation', 3),
    'quaternion': ('R', 'Lcl Rotation', 4),
    'rotation': ('R', 'Lcl Rotation', 3),
    'scale': ('S', 'Lcl Scaling', 3),
}

AXES = ('X', 'Y', 'Z')

CREATOR = "FBX Merge Exporter"


def seconds_to_ktime(seconds):
    """Convert seconds to FBX KTime ticks"""
    return int(round(float(seconds) * KTIME_PER_SECOND))


def _prop_value(value):
    if isinstance(value, FBXProperty):
        return value
    if isinstance(value, (bool, np.bool_)):
        return FBXProperty.int32(int(value))
    if isinstance(value, (int, np.integer)):
        if -2**31 <= int(value) < 2**31:
            return FBXProperty.int32(value)
        return FBXProperty.int64(value)
    if isinstance(value, (float, np.floating)):
        return FBXProperty.float64(value)
    return FBXProperty.string(value)


def _leaf(name, *values):
    """Node with only properties"""
    return FBXNode(name, [_prop_value(v) for v in values])


def _p(name, type_name, label, flags, *values):
    """Properties70 'P' entry"""
    properties = [FBXProperty.string(name), FBXProperty.string(type_name),
                  FBXProperty.string(label), FBXProperty.string(flags)]
    properties.extend(_prop_value(v) for v in values)
    return FBXNode("P", properties)


@dataclass
class ExportResult:
    """Serialized FBX document plus what went into it

    Attributes:
        data: Complete FBX binary file contents
        warnings: Non-blocking validation warnings
        model_count: Number of Model objects written
        animation_names: Names of the clips written as animation stacks
    """
    data: bytes
    warnings: List[str] = field(default_factory=list)
    model_count: int = 0
    animation_names: List[str] = field(default_factory=list)


class FBXExporter(BaseExporter):
    """FBX binary file exporter for skinned models with merged animations"""

    def __init__(self, validator=None, processor=None, fps=30.0,
                 format_version=FBX_VERSION, creation_time=None, progress_callback=None):
        """Initialize exporter

        Args:
            validator: ExportValidator (default instance if None)
            processor: SceneProcessor (default instance if None)
            fps: Frame rate written to the global settings
            format_version: FBX version number (7400 = 32-bit record offsets)
            creation_time: datetime for the header time stamp (now if None)
            progress_callback: Optional function to call for progress updates
        """
        super().__init__(progress_callback)
        self.validator = validator or ExportValidator()
        self.processor = processor or SceneProcessor(progress_callback)
        self.fps = fps
        self.format_version = format_version
        self.creation_time = creation_time
        self._reset_ids()

    def _reset_ids(self):
        # Object ID tracking (FBX uses unique 64-bit IDs)
        self._next_id = DOCUMENT_ID + 1
        self._object_ids = {}  # key -> id mapping
        self._connections = []  # (child_id, parent_id, property) tuples
        self._counts = {}  # object type -> count, for Definitions

    def _get_id(self, key):
        """Get or create unique ID for an object"""
        if key not in self._object_ids:
            self._object_ids[key] = self._next_id
            self._next_id += 1
        return self._object_ids[key]

    def _count(self, object_type):
        self._counts[object_type] = self._counts.get(object_type, 0) + 1

    def _connect(self, child_id, parent_id, prop=None):
        self._connections.append((child_id, parent_id, prop))

    def get_format_name(self):
        return "FBX"

    def get_file_extension(self):
        return "fbx"

    # === PIPELINE ===

    def build(self, scene_data: SceneData):
        """Validate, sanitize and serialize a scene with its animations

        Args:
            scene_data: SceneData with the scene root and the clips to export

        Returns:
            ExportResult: Bytes and collected warnings

        Raises:
            ExportValidationError: Scene or animations have hard issues
        """
        # Hierarchy first: the scene checks walk the tree and assume no cycles
        hierarchy = self.processor.validate_hierarchy(scene_data.root)
        if hierarchy.ok:
            validation = self.validator.validate(scene_data.root, scene_data.animations)
        else:
            validation = hierarchy.merge(self.validator.validate_animations(scene_data.animations))

        for warning in validation.warnings:
            self.log(f"  WARNING: {warning}")
        if not validation.ok:
            raise ExportValidationError(validation.issues, validation.warnings)

        scene = self.processor.prepare_scene(scene_data.root)
        clips = self.processor.prepare_animations(scene_data.animations)

        self._reset_ids()
        objects = self._build_objects(scene, clips)

        nodes = [
            self._build_header_extension(),
            self._build_global_settings(clips),
            self._build_documents(clips),
            FBXNode("References"),
            self._build_definitions(),
            objects,
            self._build_connections(),
        ]
        if clips:
            nodes.append(self._build_takes(clips))

        data = FBXBinaryWriter(format_version=self.format_version).write(nodes)
        self.log(f"  Serialized {len(data)} bytes "
                 f"({self._counts.get('Model', 0)} models, {len(clips)} animations)")

        return ExportResult(
            data=data,
            warnings=list(validation.warnings),
            model_count=self._counts.get('Model', 0),
            animation_names=[clip.name for clip in clips],
        )

    def export(self, scene_data: SceneData, output_path, shot_name):
        """Main export method using SceneData

        Args:
            scene_data: SceneData instance with scene root and animations
            output_path: Output directory
            shot_name: Shot/scene name (file name stem)
        """
        try:
            self.log("Exporting FBX binary format...")

            output_dir = self.validate_output_path(output_path)
            fbx_file = output_dir / f"{shot_name}.fbx"

            result = self.build(scene_data)
            fbx_file.write_bytes(result.data)

            self.log(f"FBX file created: {fbx_file.name}")

            message = f"FBX export complete: {fbx_file.name}"
            if result.warnings:
                message += f" ({len(result.warnings)} warning(s))"

            return {
                'success': True,
                'fbx_file': str(fbx_file),
                'files': [str(fbx_file)],
                'message': message,
                'animations': result.animation_names,
                'issues': [],
                'warnings': result.warnings,
            }

        except ExportValidationError as e:
            self.log(f"ERROR: {e}")
            return {
                'success': False,
                'message': str(e),
                'files': [],
                'issues': e.issues,
                'warnings': e.warnings,
            }

        except Exception as e:
            error_msg = f"FBX export failed: {str(e)}"
            self.log(f"ERROR: {error_msg}")
            import traceback
            self.log(traceback.format_exc())
            return {
                'success': False,
                'message': error_msg,
                'files': [],
                'issues': [error_msg],
                'warnings': [],
            }

    # === SECTIONS ===

    def _build_header_extension(self):
        now = self.creation_time or datetime.now()
        timestamp = FBXNode("CreationTimeStamp", children=[
            _leaf("Version", 1000),
            _leaf("Year", now.year),
            _leaf("Month", now.month),
            _leaf("Day", now.day),
            _leaf("Hour", now.hour),
            _leaf("Minute", now.minute),
            _leaf("Second", now.second),
            _leaf("Millisecond", now.microsecond // 1000),
        ])
        return FBXNode("FBXHeaderExtension", children=[
            _leaf("FBXHeaderVersion", 1003),
            _leaf("FBXVersion", self.format_version),
            _leaf("EncryptionType", 0),
            timestamp,
            _leaf("Creator", CREATOR),
        ])

    def _build_global_settings(self, clips):
        """Global settings with Y-up axis"""
        end = max((clip.duration for clip in clips), default=0.0)
        return FBXNode("GlobalSettings", children=[
            _leaf("Version", 1000),
            FBXNode("Properties70", children=[
                _p("UpAxis", "int", "Integer", "", 1),
                _p("UpAxisSign", "int", "Integer", "", 1),
                _p("FrontAxis", "int", "Integer", "", 2),
                _p("FrontAxisSign", "int", "Integer", "", 1),
                _p("CoordAxis", "int", "Integer", "", 0),
                _p("CoordAxisSign", "int", "Integer", "", 1),
                _p("OriginalUpAxis", "int", "Integer", "", 1),
                _p("OriginalUpAxisSign", "int", "Integer", "", 1),
                _p("UnitScaleFactor", "double", "Number", "", 1.0),
                _p("OriginalUnitScaleFactor", "double", "Number", "", 1.0),
                _p("AmbientColor", "ColorRGB", "Color", "", 0.0, 0.0, 0.0),
                _p("DefaultCamera", "KString", "", "", "Producer Perspective"),
                _p("TimeMode", "enum", "", "", TIME_MODE_CUSTOM),
                _p("TimeSpanStart", "KTime", "Time", "", FBXProperty.int64(0)),
                _p("TimeSpanStop", "KTime", "Time", "", FBXProperty.int64(seconds_to_ktime(end))),
                _p("CustomFrameRate", "double", "Number", "", float(self.fps)),
            ]),
        ])

    def _build_documents(self, clips):
        active = clips[0].name if clips else ""
        document = FBXNode("Document", [
            FBXProperty.int64(DOCUMENT_ID),
            FBXProperty.string("Scene"),
            FBXProperty.string("Scene"),
        ], [
            FBXNode("Properties70", children=[
                _p("SourceObject", "object", "", ""),
                _p("ActiveAnimStackName", "KString", "", "", active),
            ]),
            _leaf("RootNode", FBXProperty.int64(0)),
        ])
        return FBXNode("Documents", children=[_leaf("Count", 1), document])

    def _build_definitions(self):
        """Object type counts; built after the objects so counts are known"""
        object_types = [("GlobalSettings", 1)]
        object_types.extend(
            (name, self._counts[name]) for name in (
                "Model", "NodeAttribute", "Geometry", "Material",
                "AnimationStack", "AnimationLayer", "AnimationCurveNode", "AnimationCurve",
            ) if self._counts.get(name)
        )

        definitions = FBXNode("Definitions", children=[
            _leaf("Version", 100),
            _leaf("Count", sum(count for _, count in object_types)),
        ])
        for name, count in object_types:
            definitions.add(FBXNode("ObjectType", [FBXProperty.string(name)],
                                    [_leaf("Count", count)]))
        return definitions

    def _build_connections(self):
        connections = FBXNode("Connections")
        for child_id, parent_id, prop in self._connections:
            if prop:
                # Property connection
                connections.add(_leaf("C", "OP", FBXProperty.int64(child_id),
                                      FBXProperty.int64(parent_id), prop))
            else:
                # Object-Object connection
                connections.add(_leaf("C", "OO", FBXProperty.int64(child_id),
                                      FBXProperty.int64(parent_id)))
        return connections

    def _build_takes(self, clips):
        takes = FBXNode("Takes", children=[_leaf("Current", clips[0].name)])
        for clip in clips:
            stop = FBXProperty.int64(seconds_to_ktime(clip.duration))
            takes.add(FBXNode("Take", [FBXProperty.string(clip.name)], [
                _leaf("FileName", f"{self._sanitize_file_name(clip.name)}.tak"),
                _leaf("LocalTime", FBXProperty.int64(0), stop),
                _leaf("ReferenceTime", FBXProperty.int64(0), stop),
            ]))
        return takes

    # === OBJECTS ===

    def _build_objects(self, scene, clips):
        objects = FBXNode("Objects")
        written_materials = set()
        models_by_name = {}

        # Pre-order walk: every parent id exists before its children connect
        for node in scene.traverse():
            model_id = self._get_id(f"Model::{node.uid}")
            parent_id = 0 if node.parent is None else self._get_id(f"Model::{node.parent.uid}")
            models_by_name.setdefault(node.name, model_id)

            objects.add(self._build_model(node, model_id))
            self._connect(model_id, parent_id)

            if node.is_mesh:
                geometry = self._build_geometry(node)
                if geometry is not None:
                    objects.add(geometry)
                for material in node.materials:
                    material_id = self._get_id(f"Material::{material.uuid}")
                    if material.uuid not in written_materials:
                        written_materials.add(material.uuid)
                        objects.add(self._build_material(material, material_id))
                    self._connect(material_id, model_id)
            else:
                objects.add(self._build_node_attribute(node, model_id))

        for index, clip in enumerate(clips):
            objects.children.extend(self._build_animation(index, clip, models_by_name))

        return objects

    def _build_model(self, node, model_id):
        if node.is_mesh:
            model_type = "Mesh"
        elif node.is_bone:
            model_type = "LimbNode"
        else:
            model_type = "Null"
        self._count("Model")

        rotation = np.degrees(node.rotation)
        return FBXNode("Model", [
            FBXProperty.int64(model_id),
            FBXProperty.string(self._object_name(node.name, "Model")),
            FBXProperty.string(model_type),
        ], [
            _leaf("Version", 232),
            FBXNode("Properties70", children=[
                _p("Lcl Translation", "Lcl Translation", "", "A", *map(float, node.position)),
                _p("Lcl Rotation", "Lcl Rotation", "", "A", *map(float, rotation)),
                _p("Lcl Scaling", "Lcl Scaling", "", "A", *map(float, node.scale)),
            ]),
            _leaf("Shading", "Y"),
            _leaf("Culling", "CullingOff"),
        ])

    def _build_node_attribute(self, node, model_id):
        attribute_id = self._get_id(f"NodeAttribute::{node.uid}")
        attribute_type = "LimbNode" if node.is_bone else "Null"
        self._count("NodeAttribute")
        self._connect(attribute_id, model_id)

        return FBXNode("NodeAttribute", [
            FBXProperty.int64(attribute_id),
            FBXProperty.string(self._object_name(node.name, "NodeAttribute")),
            FBXProperty.string(attribute_type),
        ], [
            _leaf("TypeFlags", "Skeleton" if node.is_bone else "Null"),
        ])

    def _build_geometry(self, node):
        geometry = node.geometry
        if geometry is None or geometry.positions is None:
            return None

        geometry_id = self._get_id(f"Geometry::{node.uid}")
        self._count("Geometry")
        self._connect(geometry_id, self._get_id(f"Model::{node.uid}"))

        # Last index of each polygon is stored as -(index + 1)
        polygons = geometry.triangles().astype(np.int64)
        polygons[:, 2] = -(polygons[:, 2] + 1)

        children = [
            _leaf("GeometryVersion", 124),
            FBXNode("Vertices", [FBXProperty.float64_array(geometry.positions)]),
            FBXNode("PolygonVertexIndex", [FBXProperty.int32_array(polygons)]),
        ]
        layer = FBXNode("Layer", [FBXProperty.int32(0)], [_leaf("Version", 100)])

        if geometry.normals is not None:
            children.append(FBXNode("LayerElementNormal", [FBXProperty.int32(0)], [
                _leaf("Version", 101),
                _leaf("Name", ""),
                _leaf("MappingInformationType", "ByVertice"),
                _leaf("ReferenceInformationType", "Direct"),
                FBXNode("Normals", [FBXProperty.float64_array(geometry.normals)]),
            ]))
            layer.add(self._layer_element("LayerElementNormal"))

        if geometry.uvs is not None:
            children.append(FBXNode("LayerElementUV", [FBXProperty.int32(0)], [
                _leaf("Version", 101),
                _leaf("Name", "map1"),
                _leaf("MappingInformationType", "ByVertice"),
                _leaf("ReferenceInformationType", "Direct"),
                FBXNode("UV", [FBXProperty.float64_array(geometry.uvs)]),
            ]))
            layer.add(self._layer_element("LayerElementUV"))

        if node.materials:
            children.append(FBXNode("LayerElementMaterial", [FBXProperty.int32(0)], [
                _leaf("Version", 101),
                _leaf("Name", ""),
                _leaf("MappingInformationType", "AllSame"),
                _leaf("ReferenceInformationType", "IndexToDirect"),
                FBXNode("Materials", [FBXProperty.int32_array([0])]),
            ]))
            layer.add(self._layer_element("LayerElementMaterial"))

        children.append(layer)
        return FBXNode("Geometry", [
            FBXProperty.int64(geometry_id),
            FBXProperty.string(self._object_name(node.name, "Geometry")),
            FBXProperty.string("Mesh"),
        ], children)

    def _layer_element(self, element_type):
        return FBXNode("LayerElement", children=[
            _leaf("Type", element_type),
            _leaf("TypedIndex", 0),
        ])

    def _build_material(self, material, material_id):
        self._count("Material")
        color = [float(c) for c in material.color]
        properties = FBXNode("Properties70", children=[
            _p("DiffuseColor", "Color", "", "A", *color),
            _p("SpecularColor", "Color", "", "A", 0.2, 0.2, 0.2),
            _p("Shininess", "double", "Number", "", 20.0),
            _p("ShininessExponent", "double", "Number", "", 20.0),
            _p("ReflectionColor", "Color", "", "A", 0.0, 0.0, 0.0),
            _p("Opacity", "double", "Number", "", float(material.opacity)),
        ])
        if material.transparent:
            properties.add(_p("TransparencyFactor", "double", "Number", "",
                              1.0 - float(material.opacity)))

        return FBXNode("Material", [
            FBXProperty.int64(material_id),
            FBXProperty.string(self._object_name(material.name, "Material")),
            FBXProperty.string(""),
        ], [
            _leaf("Version", 102),
            _leaf("ShadingModel", "phong"),
            _leaf("MultiLayer", 0),
            properties,
        ])

    # === ANIMATION ===

    def _build_animation(self, index, clip, models_by_name):
        """AnimationStack, AnimationLayer, curve nodes and curves for one clip"""
        stack_id = self._get_id(f"AnimationStack::{index}")
        layer_id = self._get_id(f"AnimationLayer::{index}")
        stop = FBXProperty.int64(seconds_to_ktime(clip.duration))
        self._count("AnimationStack")
        self._count("AnimationLayer")

        nodes = [
            FBXNode("AnimationStack", [
                FBXProperty.int64(stack_id),
                FBXProperty.string(self._object_name(clip.name, "AnimStack")),
                FBXProperty.string(""),
            ], [
                FBXNode("Properties70", children=[
                    _p("LocalStart", "KTime", "Time", "", FBXProperty.int64(0)),
                    _p("LocalStop", "KTime", "Time", "", stop),
                    _p("ReferenceStart", "KTime", "Time", "", FBXProperty.int64(0)),
                    _p("ReferenceStop", "KTime", "Time", "", stop),
                ]),
            ]),
            FBXNode("AnimationLayer", [
                FBXProperty.int64(layer_id),
                FBXProperty.string(self._object_name("BaseLayer", "AnimLayer")),
                FBXProperty.string(""),
            ]),
        ]
        self._connect(layer_id, stack_id)

        skipped = 0
        for track_index, track in enumerate(clip.tracks):
            channel = CHANNELS.get(track.property_name)
            model_id = models_by_name.get(track.node_name)
            if channel is None or model_id is None:
                skipped += 1
                continue
            nodes.extend(self._build_curve_node(
                f"{index}::{track_index}", track, channel, layer_id, model_id))

        if skipped:
            self.log(f"  Animation \"{clip.name}\": skipped {skipped} track(s) "
                     f"without a matching object or transform channel")
        return nodes

    def _build_curve_node(self, key, track, channel, layer_id, model_id):
        prefix, model_property, columns = channel
        frames = track.values.reshape(-1, columns)
        if track.property_name == 'quaternion':
            frames = np.degrees(quaternions_to_euler(frames))
        elif track.property_name == 'rotation':
            frames = np.degrees(frames)

        curve_node_id = self._get_id(f"AnimationCurveNode::{key}")
        self._count("AnimationCurveNode")
        self._connect(curve_node_id, layer_id)
        self._connect(curve_node_id, model_id, model_property)

        nodes = [FBXNode("AnimationCurveNode", [
            FBXProperty.int64(curve_node_id),
            FBXProperty.string(self._object_name(prefix, "AnimCurveNode")),
            FBXProperty.string(""),
        ], [
            FBXNode("Properties70", children=[
                _p(f"d|{axis}", "Number", "", "A", float(frames[0, column]))
                for column, axis in enumerate(AXES)
            ]),
        ])]

        key_times = np.array([seconds_to_ktime(t) for t in track.times], dtype=np.float64)
        key_count = len(key_times)

        for column, axis in enumerate(AXES):
            curve_id = self._get_id(f"AnimationCurve::{key}::{axis}")
            self._count("AnimationCurve")
            self._connect(curve_id, curve_node_id, f"d|{axis}")

            values = frames[:, column]
            nodes.append(FBXNode("AnimationCurve", [
                FBXProperty.int64(curve_id),
                FBXProperty.string(self._object_name("", "AnimCurve")),
                FBXProperty.string(""),
            ], [
                _leaf("Default", float(values[0])),
                _leaf("KeyVer", 4009),
                FBXNode("KeyTime", [FBXProperty.float64_array(key_times)]),
                FBXNode("KeyValueFloat", [FBXProperty.float64_array(values)]),
                # All keys linear interpolation
                FBXNode("KeyAttrFlags", [FBXProperty.int32_array([24836])]),
                FBXNode("KeyAttrDataFloat", [FBXProperty.float64_array([0.0, 0.0, 0.0, 0.0])]),
                FBXNode("KeyAttrRefCount", [FBXProperty.int32_array([key_count])]),
            ]))

        return nodes

    # === NAMING ===

    def _object_name(self, name, class_name):
        return f"{self._sanitize_name(name)}{NAME_SEPARATOR}{class_name}"

    def _sanitize_name(self, name):
        """Remove control characters (they collide with the class separator)"""
        return re.sub(r'[\x00-\x1f]', '', name or '')

    def _sanitize_file_name(self, name):
        sanitized = re.sub(r'[^\w\-. ]', '_', name).strip()
        return sanitized or "Take"
