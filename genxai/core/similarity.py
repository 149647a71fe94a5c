from __future__ import annotations

import logging
import math
from typing import Sequence

logger = logging.getLogger(__name__)


def get_vector_similarity(vector1: Sequence[float], vector2: Sequence[float]) -> float:
    """Cosine similarity of two vectors, normalized to the 0..1 range.

    Args:
        vector1: first vector of numbers
        vector2: second vector of numbers
    """
    if vector1 is None or vector2 is None:
        raise ValueError("Both vector1 and vector2 must contain values.")
    if len(vector1) != len(vector2):
        raise ValueError("vector1 and vector2 must have the same length.")
    if len(vector1) == 0:
        raise ValueError("Vectors cannot be empty.")

    dot = sum(float(a) * float(b) for a, b in zip(vector1, vector2))
    magnitude1 = math.sqrt(sum(float(a) ** 2 for a in vector1))
    magnitude2 = math.sqrt(sum(float(b) ** 2 for b in vector2))
    if magnitude1 == 0 or magnitude2 == 0:
        logger.debug("Zero magnitude vector; similarity undefined, returning 0.0")
        return 0.0

    similarity = min(max(dot / (magnitude1 * magnitude2), -1.0), 1.0)
    return round((similarity + 1) / 2, 6)
