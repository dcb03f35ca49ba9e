"""VectorIndex — in-process usearch HNSW index keyed by content row id."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import numpy as np
from usearch.index import Index

from quarry.exceptions import StorageError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

# Below this many vectors a brute-force scan is cheap and exact.
_EXACT_LIMIT = 50_000

_USEARCH_METRICS: dict[str, str] = {
    "cosine": "cos",
    "l2": "l2sq",
    "dot": "ip",
}


class VectorIndex:
    """Approximate nearest-neighbour index over fixed-length float32 vectors.

    Holds no payload: keys are the integer primary keys of content rows,
    which remain the durable source of truth.  Distances are returned
    as computed by usearch (``cos`` → ``1 - cosine_similarity``).

    Thread-safe via :class:`threading.Lock`.
    """

    def __init__(self, *, dimension: int, metric: str = "cosine") -> None:
        if metric not in _USEARCH_METRICS:
            msg = f"Unsupported distance metric {metric!r}"
            raise StorageError(msg)
        self._dimension = dimension
        self._metric = metric
        self._lock = threading.Lock()
        self._index = self._new_index()

    def _new_index(self) -> Index:
        return Index(ndim=self._dimension, metric=_USEARCH_METRICS[self._metric], dtype="f32")

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def metric(self) -> str:
        return self._metric

    def __len__(self) -> int:
        """Return the number of live vectors."""
        with self._lock:
            return len(self._index)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, keys: Sequence[int], vectors: Sequence[Sequence[float]] | np.ndarray) -> None:
        """Add *vectors* under *keys*.  Lengths must match the index dimension."""
        if len(keys) == 0:
            return
        try:
            matrix = np.asarray(vectors, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Vectors are not numeric: {exc}") from exc
        if matrix.ndim != 2 or matrix.shape[1] != self._dimension:
            msg = f"Expected vectors of dimension {self._dimension}, got shape {matrix.shape}"
            raise StorageError(msg)
        if matrix.shape[0] != len(keys):
            msg = f"{len(keys)} keys for {matrix.shape[0]} vectors"
            raise StorageError(msg)
        labels = np.asarray(keys, dtype=np.uint64)
        try:
            with self._lock:
                self._index.add(labels, matrix)
        except (RuntimeError, ValueError) as exc:
            raise StorageError(f"Vector index add failed: {exc}") from exc

    def contains(self, key: int) -> bool:
        with self._lock:
            return bool(self._index.contains(int(key)))

    def remove(self, keys: Iterable[int]) -> None:
        """Remove *keys*; unknown keys are ignored."""
        with self._lock:
            for key in keys:
                if self._index.contains(int(key)):
                    self._index.remove(int(key))

    def reset(self) -> None:
        """Drop every vector and free the graph."""
        with self._lock:
            self._index = self._new_index()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, vector: Sequence[float], k: int) -> list[tuple[int, float]]:
        """Return up to *k* ``(key, distance)`` pairs, nearest first."""
        query = np.asarray(vector, dtype=np.float32)
        if query.ndim != 1 or query.shape[0] != self._dimension:
            msg = f"Expected a query of dimension {self._dimension}, got shape {query.shape}"
            raise StorageError(msg)

        with self._lock:
            size = len(self._index)
            if size == 0 or k <= 0:
                return []
            try:
                matches = self._index.search(query, min(k, size), exact=size <= _EXACT_LIMIT)
            except (RuntimeError, ValueError) as exc:
                raise StorageError(f"Vector index search failed: {exc}") from exc

        pairs = [
            (int(key), float(distance))
            for key, distance in zip(
                matches.keys.tolist(), matches.distances.tolist(), strict=True
            )
        ]
        pairs.sort(key=lambda pair: pair[1])
        return pairs
