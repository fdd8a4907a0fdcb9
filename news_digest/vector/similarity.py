"""Vector math helpers."""

import numpy as np
import numpy.typing as npt


FloatArray = npt.NDArray[np.float32]


def normalize(vector: npt.ArrayLike) -> FloatArray:
    """Scale a vector to unit length; a zero vector is returned unchanged."""
    arr = np.asarray(vector, dtype=np.float32)
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        return arr
    return arr / norm


def cosine_similarity(a: npt.ArrayLike, b: npt.ArrayLike) -> float:
    """Compute the cosine similarity of two vectors.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector is all zeros.

    Raises:
        ValueError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    if va.shape != vb.shape:
        msg = f"Vectors must have same length: {va.shape} != {vb.shape}"
        raise ValueError(msg)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def mean_vector(vectors: list[list[float]]) -> FloatArray | None:
    """Mean of unit-normalised vectors, or None when there are none."""
    if not vectors:
        return None
    matrix = np.vstack([normalize(v) for v in vectors])
    return matrix.mean(axis=0)
