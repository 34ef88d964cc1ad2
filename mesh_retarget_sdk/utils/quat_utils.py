"""
Quaternion helpers for rest-pose math.

All quaternions are in (w, x, y, z) format, the format scene nodes store.
"""

import numpy as np


IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0])


def quat_mul(q1, q2):
    """
    Hamilton product q1 * q2 (w, x, y, z format).

    Args:
        q1: First quaternion (w, x, y, z)
        q2: Second quaternion (w, x, y, z)

    Returns:
        Product quaternion (w, x, y, z)
    """
    w1, x1, y1, z1 = q1[0], q1[1], q1[2], q1[3]
    w2, x2, y2, z2 = q2[0], q2[1], q2[2], q2[3]
    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2
    ])


def quat_normalize(q):
    """
    Normalize a quaternion; degenerate input becomes the identity.

    Args:
        q: Quaternion (w, x, y, z)

    Returns:
        Unit quaternion
    """
    q = np.asarray(q, dtype=np.float64)
    norm = np.sqrt(np.dot(q, q))
    if norm < 1e-8:
        return IDENTITY_QUAT.copy()
    return q / norm


def rotate_vec_by_quat(v, q):
    """
    Rotate vector v by unit quaternion q (w, x, y, z format).

    Args:
        v: 3D vector
        q: Quaternion (w, x, y, z)

    Returns:
        Rotated 3D vector
    """
    w, x, y, z = q[0], q[1], q[2], q[3]
    # t = 2 * cross(q_xyz, v)
    tx = 2.0 * (y * v[2] - z * v[1])
    ty = 2.0 * (z * v[0] - x * v[2])
    tz = 2.0 * (x * v[1] - y * v[0])
    # v + w * t + cross(q_xyz, t)
    return np.array([
        v[0] + w * tx + (y * tz - z * ty),
        v[1] + w * ty + (z * tx - x * tz),
        v[2] + w * tz + (x * ty - y * tx)
    ])
