#!/usr/bin/env python3
"""
Transform Math Module
Matrix, Euler and quaternion helpers shared by the processor, the
retargeting routine and the FBX exporter.

Conventions:
- Euler angles are radians, XYZ order (rotation matrix = Rx * Ry * Rz)
- Quaternions are stored as (x, y, z, w)
- Matrices are 4x4 numpy arrays, column vectors (translation in last column)
"""

import numpy as np


def euler_to_matrix3(rotation):
    """Build a 3x3 rotation matrix from XYZ Euler angles (radians)"""
    rx, ry, rz = (float(v) for v in rotation)
    a, b = np.cos(rx), np.sin(rx)
    c, d = np.cos(ry), np.sin(ry)
    e, f = np.cos(rz), np.sin(rz)

    return np.array([
        [c * e, -c * f, d],
        [a * f + b * e * d, a * e - b * f * d, -b * c],
        [b * f - a * e * d, b * e + a * f * d, a * c],
    ])


def compose_matrix(position, rotation, scale):
    """Compose a local 4x4 matrix from translation, XYZ Euler rotation and scale

    Args:
        position: [x, y, z] translation
        rotation: [rx, ry, rz] radians
        scale: [sx, sy, sz]

    Returns:
        np.ndarray: 4x4 transform matrix
    """
    matrix = np.eye(4)
    matrix[:3, :3] = euler_to_matrix3(rotation) * np.asarray(scale, dtype=float)
    matrix[:3, 3] = np.asarray(position, dtype=float)
    return matrix


def euler_to_quaternion(rotation):
    """Convert XYZ Euler angles (radians) to a unit quaternion (x, y, z, w)"""
    rx, ry, rz = (float(v) / 2.0 for v in rotation)
    c1, c2, c3 = np.cos(rx), np.cos(ry), np.cos(rz)
    s1, s2, s3 = np.sin(rx), np.sin(ry), np.sin(rz)

    return np.array([
        s1 * c2 * c3 + c1 * s2 * s3,
        c1 * s2 * c3 - s1 * c2 * s3,
        c1 * c2 * s3 + s1 * s2 * c3,
        c1 * c2 * c3 - s1 * s2 * s3,
    ])


def quaternion_multiply(a, b):
    """Hamilton product a * b for (..., 4) arrays of (x, y, z, w) quaternions"""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    ax, ay, az, aw = a[..., 0], a[..., 1], a[..., 2], a[..., 3]
    bx, by, bz, bw = b[..., 0], b[..., 1], b[..., 2], b[..., 3]

    return np.stack([
        ax * bw + aw * bx + ay * bz - az * by,
        ay * bw + aw * by + az * bx - ax * bz,
        az * bw + aw * bz + ax * by - ay * bx,
        aw * bw - ax * bx - ay * by - az * bz,
    ], axis=-1)


def quaternion_inverse(q):
    """Inverse of unit quaternion(s) (conjugate)"""
    q = np.array(q, dtype=float)
    q[..., :3] *= -1.0
    return q


def quaternions_to_euler(quaternions):
    """Convert an (N, 4) array of quaternions to (N, 3) XYZ Euler angles in radians

    Uses the same decomposition as the Euler -> matrix convention above, so
    euler -> quaternion -> euler round-trips outside of gimbal lock.
    """
    q = np.asarray(quaternions, dtype=float).reshape(-1, 4)
    norms = np.linalg.norm(q, axis=1, keepdims=True)
    norms[norms == 0.0] = 1.0
    x, y, z, w = (q / norms).T

    m11 = 1.0 - 2.0 * (y * y + z * z)
    m12 = 2.0 * (x * y - w * z)
    m13 = 2.0 * (x * z + w * y)
    m22 = 1.0 - 2.0 * (x * x + z * z)
    m23 = 2.0 * (y * z - w * x)
    m32 = 2.0 * (y * z + w * x)
    m33 = 1.0 - 2.0 * (x * x + y * y)

    ry = np.arcsin(np.clip(m13, -1.0, 1.0))
    locked = np.abs(m13) >= 0.9999999
    rx = np.where(locked, np.arctan2(m32, m22), np.arctan2(-m23, m33))
    rz = np.where(locked, 0.0, np.arctan2(-m12, m11))

    return np.stack([rx, ry, rz], axis=1)
