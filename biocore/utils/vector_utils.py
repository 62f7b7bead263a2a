import numpy as np

def normalize_vectors(vectors: np.ndarray, axis: int = 1) -> np.ndarray:
    """
    Normalize vectors to unit length.

    Args:
        vectors: Array of vectors to normalize
        axis: Axis along which to normalize

    Returns:
        Normalized vectors
    """
    norms = np.linalg.norm(vectors, axis=axis, keepdims=True)
    # Avoid division by zero
    norms = np.maximum(norms, 1e-10)
    return vectors / norms

def similarity_matrix(x: np.ndarray, y: np.ndarray, metric: str = "l2") -> np.ndarray:
    """
    Compute pairwise similarity between two sets of vectors.

    Higher values always mean more similar, so Euclidean distances are negated.

    Args:
        x: First set of vectors (m, dimension)
        y: Second set of vectors (n, dimension)
        metric: Similarity metric ('l2', 'cosine', 'dot')

    Returns:
        Similarity matrix (m, n)
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if metric == "l2":
        m = x.shape[0]
        n = y.shape[0]
        xx = np.sum(x**2, axis=1).reshape(m, 1)
        yy = np.sum(y**2, axis=1).reshape(1, n)
        xy = np.dot(x, y.T)
        # Clamp rounding noise before the square root
        similarities = -np.sqrt(np.maximum(xx + yy - 2 * xy, 0.0))
    elif metric == "cosine":
        similarities = np.dot(normalize_vectors(x), normalize_vectors(y).T)
    elif metric == "dot":
        similarities = np.dot(x, y.T)
    else:
        raise ValueError(f"Unsupported metric: {metric}")

    return similarities.astype(np.float32)

def stack_rows(rows, dimension: int = 0) -> np.ndarray:
    """
    Stack 1-D payloads into a float32 matrix.

    Args:
        rows: Sequence of array-likes
        dimension: Column count to use when ``rows`` is empty

    Returns:
        Matrix with one row per payload
    """
    rows = [np.asarray(row, dtype=np.float32).ravel() for row in rows]
    if not rows:
        return np.zeros((0, dimension), dtype=np.float32)
    return np.vstack(rows)
