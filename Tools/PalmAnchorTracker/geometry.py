"""
Vector and quaternion helpers for hand pose estimation.

Quaternions are numpy arrays in [x, y, z, w] order.
"""

from typing import Optional

import numpy as np

from .config import MIN_VECTOR_LENGTH

IDENTITY_QUATERNION = np.array([0.0, 0.0, 0.0, 1.0])
WORLD_UP = np.array([0.0, 1.0, 0.0])

# Below this sin^2(half angle) slerp degrades to a normalized lerp
_SLERP_EPSILON = np.finfo(np.float64).eps


def safe_normalize(
    vector: np.ndarray,
    min_length: float = MIN_VECTOR_LENGTH
) -> Optional[np.ndarray]:
    """
    Normalize a vector, refusing degenerate input.

    Args:
        vector: Input vector.
        min_length: Length below which the vector is considered zero.

    Returns:
        Unit vector, or None if the input is near-zero length or not finite.
    """
    vector = np.asarray(vector, dtype=np.float64)
    if not np.all(np.isfinite(vector)):
        return None

    length = float(np.linalg.norm(vector))
    if length < min_length:
        return None
    return vector / length


def is_orthonormal(basis: np.ndarray, tolerance: float = 1e-6) -> bool:
    """Check that the columns of a 3x3 matrix form an orthonormal basis."""
    basis = np.asarray(basis, dtype=np.float64)
    return bool(np.allclose(basis.T @ basis, np.eye(3), atol=tolerance))


def quaternion_from_basis(
    x_axis: np.ndarray,
    y_axis: np.ndarray,
    z_axis: np.ndarray
) -> np.ndarray:
    """
    Build a rotation quaternion from three orthonormal axes.

    The axes become the columns of the rotation matrix. Uses the
    trace-based branch selection for numerical stability.

    Returns:
        Unit quaternion [x, y, z, w].
    """
    m = np.column_stack([x_axis, y_axis, z_axis]).astype(np.float64)
    m11, m12, m13 = m[0]
    m21, m22, m23 = m[1]
    m31, m32, m33 = m[2]

    trace = m11 + m22 + m33

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (m32 - m23) * s
        y = (m13 - m31) * s
        z = (m21 - m12) * s
    elif m11 > m22 and m11 > m33:
        s = 2.0 * np.sqrt(1.0 + m11 - m22 - m33)
        w = (m32 - m23) / s
        x = 0.25 * s
        y = (m12 + m21) / s
        z = (m13 + m31) / s
    elif m22 > m33:
        s = 2.0 * np.sqrt(1.0 + m22 - m11 - m33)
        w = (m13 - m31) / s
        x = (m12 + m21) / s
        y = 0.25 * s
        z = (m23 + m32) / s
    else:
        s = 2.0 * np.sqrt(1.0 + m33 - m11 - m22)
        w = (m21 - m12) / s
        x = (m13 + m31) / s
        y = (m23 + m32) / s
        z = 0.25 * s

    return normalize_quaternion(np.array([x, y, z, w]))


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """Convert a unit quaternion [x, y, z, w] to a 3x3 rotation matrix."""
    x, y, z, w = normalize_quaternion(q)
    return np.array([
        [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
        [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
        [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
    ])


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    """
    Rescale a quaternion to unit length.

    Returns the identity quaternion if q is zero or not finite.
    """
    q = np.asarray(q, dtype=np.float64)
    norm = float(np.linalg.norm(q))
    if not np.isfinite(norm) or norm < MIN_VECTOR_LENGTH:
        return IDENTITY_QUATERNION.copy()
    return q / norm


def lerp(current: np.ndarray, target: np.ndarray, alpha: float) -> np.ndarray:
    """Linear interpolation from current toward target by alpha."""
    return current + (target - current) * alpha


def slerp(q_from: np.ndarray, q_to: np.ndarray, t: float) -> np.ndarray:
    """
    Spherical linear interpolation between two unit quaternions.

    Takes the shortest arc and always returns a unit quaternion.

    Args:
        q_from: Start quaternion [x, y, z, w].
        q_to: Target quaternion [x, y, z, w].
        t: Interpolation factor in [0, 1].

    Returns:
        Interpolated unit quaternion.
    """
    q_from = np.asarray(q_from, dtype=np.float64)
    q_to = np.asarray(q_to, dtype=np.float64)

    if t <= 0.0:
        return normalize_quaternion(q_from)
    if t >= 1.0:
        return normalize_quaternion(q_to)

    cos_half_theta = float(np.dot(q_from, q_to))

    # q and -q are the same rotation, go the short way round
    if cos_half_theta < 0.0:
        q_to = -q_to
        cos_half_theta = -cos_half_theta

    if cos_half_theta >= 1.0:
        return normalize_quaternion(q_from)

    sqr_sin_half_theta = 1.0 - cos_half_theta * cos_half_theta
    if sqr_sin_half_theta <= _SLERP_EPSILON:
        return normalize_quaternion(q_from * (1.0 - t) + q_to * t)

    sin_half_theta = np.sqrt(sqr_sin_half_theta)
    half_theta = np.arctan2(sin_half_theta, cos_half_theta)
    ratio_a = np.sin((1.0 - t) * half_theta) / sin_half_theta
    ratio_b = np.sin(t * half_theta) / sin_half_theta

    return normalize_quaternion(q_from * ratio_a + q_to * ratio_b)


def quaternion_angle(q1: np.ndarray, q2: np.ndarray) -> float:
    """Rotation angle in radians between two unit quaternions."""
    dot = abs(float(np.dot(normalize_quaternion(q1), normalize_quaternion(q2))))
    return 2.0 * float(np.arccos(min(1.0, dot)))
