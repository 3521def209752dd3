# adapters/objection_embeddings.py
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import numpy as np

from core.objections import CANONICAL_OBJECTIONS
from core.synth_utils import embed_texts

Embedder = Callable[[List[str]], List[List[float]]]


def _normalise(rows: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(rows, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return rows / norms


class EmbeddingObjectionClassifier:
    """Buckets free-text objections onto the canonical list by cosine similarity."""

    def __init__(self, embedder: Embedder = embed_texts):
        self.embedder = embedder
        self._label_vecs: Optional[np.ndarray] = None

    def _labels(self) -> np.ndarray:
        if self._label_vecs is None:
            self._label_vecs = _normalise(np.asarray(self.embedder(list(CANONICAL_OBJECTIONS)), dtype=float))
        return self._label_vecs

    def __call__(self, texts: Sequence[str]) -> List[str]:
        if not texts:
            return []
        vecs = _normalise(np.asarray(self.embedder(list(texts)), dtype=float))
        sims = vecs @ self._labels().T
        return [CANONICAL_OBJECTIONS[i] for i in np.argmax(sims, axis=1)]
