"""
FBX binary node-tree writer

Encodes a generic typed tree (name, typed property list, child list) into the
FBX binary container layout:

    "Kaydara FBX Binary  \\0\\x1a\\0"  signature
    uint32                             format version
    node records ...                   see _write_node()
    13 zero bytes                      top-level null record

Node record (format version < 7500, 32-bit offsets):

    uint32 end_offset        absolute offset of the byte after this record
    uint32 num_properties
    uint32 property_list_len
    uint8  name_len
    bytes  name
    properties ...
    child records ...

end_offset and property_list_len are reserved as placeholders and back-patched
once the data they describe has been written.
"""

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np


FBX_SIGNATURE = b"Kaydara FBX Binary  \x00\x1a\x00"
FBX_VERSION = 7400
NULL_RECORD = b"\x00" * 13
ARRAY_ENCODING_RAW = 0

_UINT32_MAX = 0xFFFFFFFF


class PropertyType(Enum):
    """Property type tags (single ASCII byte on the wire)"""
    INT32 = b'I'
    INT64 = b'L'
    FLOAT64 = b'D'
    STRING = b'S'
    FLOAT64_ARRAY = b'd'
    INT32_ARRAY = b'i'


@dataclass(frozen=True)
class FBXProperty:
    """Typed property value

    Attributes:
        type: PropertyType tag
        value: int, float, str or a sequence/numpy array for array types
    """
    type: PropertyType
    value: object

    @classmethod
    def int32(cls, value):
        return cls(PropertyType.INT32, int(value))

    @classmethod
    def int64(cls, value):
        return cls(PropertyType.INT64, int(value))

    @classmethod
    def float64(cls, value):
        return cls(PropertyType.FLOAT64, float(value))

    @classmethod
    def string(cls, value):
        return cls(PropertyType.STRING, str(value))

    @classmethod
    def float64_array(cls, values):
        return cls(PropertyType.FLOAT64_ARRAY, np.asarray(values, dtype='<f8').ravel())

    @classmethod
    def int32_array(cls, values):
        return cls(PropertyType.INT32_ARRAY, np.asarray(values, dtype='<i4').ravel())


@dataclass
class FBXNode:
    """Node of the binary tree

    Attributes:
        name: Record name (ASCII/UTF-8, at most 255 bytes)
        properties: Ordered typed properties
        children: Ordered child records
    """
    name: str
    properties: List[FBXProperty] = field(default_factory=list)
    children: List['FBXNode'] = field(default_factory=list)

    def add(self, *children):
        self.children.extend(children)
        return self


class FBXBinaryWriter:
    """Growable little-endian buffer writer for FBX node trees

    The buffer starts at `initial_capacity` bytes and doubles (grow-and-copy)
    whenever a write would overflow it. Back-patch slots are absolute
    offsets into the buffer, so they stay valid across growth.
    """

    def __init__(self, initial_capacity=4 * 1024 * 1024, format_version=FBX_VERSION):
        """Initialize writer

        Args:
            initial_capacity: Initial buffer size in bytes
            format_version: Version number written after the signature
        """
        if initial_capacity < 1:
            raise ValueError("initial_capacity must be positive")
        self.format_version = format_version
        self._buffer = bytearray(initial_capacity)
        self._offset = 0

    @property
    def offset(self):
        """Current write cursor"""
        return self._offset

    @property
    def capacity(self):
        return len(self._buffer)

    def reset(self):
        self._offset = 0

    def getvalue(self):
        """Bytes written so far"""
        return bytes(self._buffer[:self._offset])

    # === BUFFER PRIMITIVES ===

    def _ensure(self, size):
        needed = self._offset + size
        if needed <= len(self._buffer):
            return
        capacity = len(self._buffer)
        while capacity < needed:
            capacity *= 2
        grown = bytearray(capacity)
        grown[:self._offset] = self._buffer[:self._offset]
        self._buffer = grown

    def _pack(self, fmt, *values):
        size = struct.calcsize(fmt)
        self._ensure(size)
        struct.pack_into(fmt, self._buffer, self._offset, *values)
        self._offset += size

    def _write_bytes(self, data):
        self._ensure(len(data))
        self._buffer[self._offset:self._offset + len(data)] = data
        self._offset += len(data)

    def _reserve_uint32(self):
        position = self._offset
        self._pack('<I', 0)
        return position

    def _patch_uint32(self, position, value):
        if not 0 <= value <= _UINT32_MAX:
            raise ValueError(f"Value {value} does not fit a 32-bit offset field")
        struct.pack_into('<I', self._buffer, position, value)

    # === RECORDS ===

    def write_header(self):
        self._write_bytes(FBX_SIGNATURE)
        self._pack('<I', self.format_version)

    def write_null_record(self):
        self._write_bytes(NULL_RECORD)

    def write_node(self, node):
        """Write one node record (and its subtree) at the cursor

        Args:
            node: FBXNode

        Returns:
            tuple: (start_offset, end_offset) of the record
        """
        name = node.name.encode('utf-8')
        if len(name) > 255:
            raise ValueError(f"Node name too long ({len(name)} bytes): {node.name[:40]}...")

        start = self._offset
        end_slot = self._reserve_uint32()
        self._pack('<I', len(node.properties))
        length_slot = self._reserve_uint32()
        self._pack('<B', len(name))
        self._write_bytes(name)

        properties_start = self._offset
        for prop in node.properties:
            self.write_property(prop)
        self._patch_uint32(length_slot, self._offset - properties_start)

        for child in node.children:
            self.write_node(child)

        self._patch_uint32(end_slot, self._offset)
        return start, self._offset

    def write_property(self, prop):
        """Write a type tag followed by the encoded value"""
        kind = prop.type
        if not isinstance(kind, PropertyType):
            raise TypeError(f"Unknown FBX property type: {kind!r}")

        self._write_bytes(kind.value)

        if kind is PropertyType.INT32:
            self._pack('<i', prop.value)
        elif kind is PropertyType.INT64:
            self._pack('<q', prop.value)
        elif kind is PropertyType.FLOAT64:
            self._pack('<d', prop.value)
        elif kind is PropertyType.STRING:
            data = str(prop.value).encode('utf-8')
            self._pack('<I', len(data))
            self._write_bytes(data)
        elif kind is PropertyType.FLOAT64_ARRAY:
            self._write_array(np.asarray(prop.value, dtype='<f8').ravel())
        elif kind is PropertyType.INT32_ARRAY:
            self._write_array(np.asarray(prop.value, dtype='<i4').ravel())
        else:
            raise TypeError(f"Unhandled FBX property type: {kind!r}")

    def _write_array(self, array):
        data = array.tobytes()
        self._pack('<III', len(array), ARRAY_ENCODING_RAW, len(data))
        self._write_bytes(data)

    # === DOCUMENT ===

    def write(self, nodes):
        """Serialize a complete document

        Args:
            nodes: Top-level FBXNode list

        Returns:
            bytes: Signature, version, node records and null record
        """
        self.reset()
        self.write_header()
        for node in nodes:
            self.write_node(node)
        self.write_null_record()
        return self.getvalue()
