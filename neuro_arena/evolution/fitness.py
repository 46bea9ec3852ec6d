"""
neuro_arena/evolution/fitness.py

Fitness samples and the per-generation ledger that holds them.

A trial produces one sample per bound artifact. The ledger stores the
sample until the coordinator consumes it; every sample is read exactly
once, and the ledger is wiped at the start of each generation so nothing
from a previous generation can leak into the next.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Iterator, Sequence, Tuple

from neuro_arena.core.artifact import ArtifactId


@dataclass(frozen=True)
class FitnessSample:
    """
    One observation of an artifact's fitness.

    `auxiliary` is an opaque payload handed to the evolutionary engine
    alongside the scalar fitness.
    """

    fitness: float
    auxiliary: Tuple[float, ...] = field(default_factory=tuple)

    ZERO: ClassVar["FitnessSample"]

    @classmethod
    def of(cls, value: float) -> "FitnessSample":
        """Sample whose auxiliary payload mirrors the scalar fitness."""
        value = float(value)
        return cls(fitness=value, auxiliary=(value,))


FitnessSample.ZERO = FitnessSample(0.0, ())


class FitnessLedger:
    """
    Per-artifact sample storage, keyed by artifact id.

    Recording overwrites any stale sample for the same key.
    Taking removes the sample, so a second take returns ZERO.
    """

    def __init__(self):
        self._samples: Dict[ArtifactId, FitnessSample] = {}

    def record(self, artifact_id: ArtifactId, sample: FitnessSample) -> None:
        self._samples[artifact_id] = sample

    def take(self, artifact_id: ArtifactId) -> FitnessSample:
        """Consume the sample for an artifact (ZERO if none was recorded)."""
        return self._samples.pop(artifact_id, FitnessSample.ZERO)

    def peek(self, artifact_id: ArtifactId) -> FitnessSample:
        return self._samples.get(artifact_id, FitnessSample.ZERO)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __contains__(self, artifact_id: object) -> bool:
        return artifact_id in self._samples

    def __iter__(self) -> Iterator[ArtifactId]:
        return iter(list(self._samples))


def mean_fitness(samples: Sequence[FitnessSample], trials: int) -> float:
    """
    Simple mean over the configured trial count.

    Missing trials count as zero; the denominator is always `trials`.
    """
    if trials <= 0:
        raise ValueError(f"trials must be positive, got {trials}")
    total = sum(s.fitness for s in samples)
    return total / trials
