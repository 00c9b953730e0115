"""Deterministic pseudo-random score triples for canonical records.

Each dimension hashes ``<salt>:<dim>:<id>`` with SHA-256 and maps the
first four digest bytes onto [0, 1).  No I/O and no randomness beyond the
hash, so re-scoring an id always reproduces the same triple.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

_MAX_U32 = 0xFFFFFFFF


@dataclass(frozen=True)
class ScoreTriple:
    popularity_score: float
    quality_score: float
    freshness_score: float

    def as_dict(self) -> dict[str, float]:
        return {
            "popularity_score": self.popularity_score,
            "quality_score": self.quality_score,
            "freshness_score": self.freshness_score,
        }


def _hash_unit(value: str) -> float:
    digest = hashlib.sha256(value.encode("utf-8")).digest()
    n = int.from_bytes(digest[:4], "big")
    # n / MAX reaches 1.0 only for 0xFFFFFFFF; keep the half-open interval
    return min(n / _MAX_U32, 1.0 - 1e-12)


def score_by_canonical_id(canonical_id: str, salt: str = "v1") -> ScoreTriple:
    return ScoreTriple(
        popularity_score=_hash_unit(f"{salt}:pop:{canonical_id}"),
        quality_score=_hash_unit(f"{salt}:qual:{canonical_id}"),
        freshness_score=_hash_unit(f"{salt}:fresh:{canonical_id}"),
    )


def apply_quality_boost(triple: ScoreTriple, boost: float) -> ScoreTriple:
    """Add ``boost`` to the quality score, clamped to [0, 1]."""
    boosted = max(0.0, min(1.0, triple.quality_score + boost))
    return ScoreTriple(
        popularity_score=triple.popularity_score,
        quality_score=boosted,
        freshness_score=triple.freshness_score,
    )
