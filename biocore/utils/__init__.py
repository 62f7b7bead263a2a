from .timing import Timer, time_function
from .vector_utils import normalize_vectors, similarity_matrix, stack_rows

__all__ = [
    "Timer",
    "time_function",
    "normalize_vectors",
    "similarity_matrix",
    "stack_rows",
]
