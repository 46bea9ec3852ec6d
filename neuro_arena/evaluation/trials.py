"""
neuro_arena/evaluation/trials.py

One timed trial at a time.

The runner knows how to:
1. Decode a genome list once per generation (failures score 0)
2. Bind each decoded artifact to a pooled agent
3. Wait out one trial window on the host clock
4. Sample one fitness per bound artifact into the ledger
5. Release every binding when the generation is over

It does not aggregate. That is the coordinator's job.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence

from neuro_arena.core.artifact import ArtifactId, ControlArtifact
from neuro_arena.core.host import SimulationHost
from neuro_arena.core.pool import AgentPool
from neuro_arena.errors import DecodeFailure
from neuro_arena.evolution.fitness import FitnessLedger, FitnessSample
from neuro_arena.evolution.genome import Genome

logger = logging.getLogger(__name__)


class GenomeDecoder(Protocol):
    def decode(self, genome: Genome) -> Optional[ControlArtifact]:
        ...


FitnessSampler = Callable[[ArtifactId], float]


@dataclass
class DecodedGenome:
    """A genome that decoded successfully, with the id of its artifact."""
    index: int
    genome: Genome
    artifact_id: ArtifactId
    artifact: ControlArtifact


class TrialRunner:
    """
    Drives timed trials for one generation at a time.

    The fitness sampler is injected: agents never reach out to a global
    supervisor, the runner asks the capability it was given.
    """

    def __init__(
        self,
        decoder: GenomeDecoder,
        pool: AgentPool,
        host: SimulationHost,
        ledger: FitnessLedger,
        sampler: FitnessSampler,
        trial_duration: float,
    ):
        if trial_duration <= 0:
            raise ValueError(f"trial_duration must be positive, got {trial_duration}")

        self.decoder = decoder
        self.pool = pool
        self.host = host
        self.ledger = ledger
        self.sampler = sampler
        self.trial_duration = trial_duration

        self._artifact_ids = itertools.count()

    def next_artifact_id(self) -> ArtifactId:
        return next(self._artifact_ids)

    # ==================== Setup ====================

    def decode(self, genomes: Sequence[Genome]) -> List[DecodedGenome]:
        """
        Decode every genome once.

        A genome that decodes to None, or whose decoder raises, is
        non-viable: it gets fitness 0 immediately and is left out.
        """
        decoded = []
        for index, genome in enumerate(genomes):
            try:
                artifact = self.decoder.decode(genome)
            except DecodeFailure as e:
                logger.debug(f"Genome {genome.genome_id} rejected by decoder: {e}")
                artifact = None
            except Exception as e:
                logger.warning(f"Genome {genome.genome_id} failed to decode: {e}")
                artifact = None

            if artifact is None:
                genome.fitness = 0.0
                genome.aux_fitness = None
                logger.debug(f"Genome {genome.genome_id} is non-viable")
                continue

            decoded.append(
                DecodedGenome(index, genome, self.next_artifact_id(), artifact)
            )

        failed = len(genomes) - len(decoded)
        if failed:
            logger.info(f"Decoded {len(decoded)}/{len(genomes)} genomes ({failed} non-viable)")
        return decoded

    def bind(self, decoded: Sequence[DecodedGenome]) -> List[DecodedGenome]:
        """
        Acquire and activate one agent per decoded artifact.

        An agent whose activation hook raises is returned to the pool and
        its genome scores 0. Returns the genomes that were bound.
        """
        bound = []
        for d in decoded:
            try:
                self.pool.acquire(d.artifact, d.artifact_id)
            except Exception as e:
                logger.warning(f"Binding genome {d.genome.genome_id} failed: {e}")
                d.genome.fitness = 0.0
                d.genome.aux_fitness = None
                continue
            bound.append(d)
        return bound

    # ==================== Trial ====================

    async def run_trial(self, decoded: Sequence[DecodedGenome], trial_index: int) -> None:
        """
        Wait one trial window, then sample every bound artifact.

        Sampling never starts before the full window has elapsed.
        """
        logger.info(f"Begin trial {trial_index + 1} ({len(decoded)} bound)")
        await self.host.wait(self.trial_duration)
        self.sample(decoded)

    def sample(self, decoded: Sequence[DecodedGenome]) -> None:
        """Record one sample per artifact, overwriting stale ones."""
        for d in decoded:
            try:
                sample = FitnessSample.of(self.sampler(d.artifact_id))
            except Exception as e:
                logger.warning(
                    f"Fitness sampling failed for genome {d.genome.genome_id}: {e}"
                )
                sample = FitnessSample.ZERO
            self.ledger.record(d.artifact_id, sample)

    # ==================== Teardown ====================

    def release(self, decoded: Sequence[DecodedGenome]) -> List[Exception]:
        """
        Release every binding.

        Each release is independent: a failing deactivation hook does not
        stop the remaining agents from being released.

        Returns the errors raised by deactivation hooks.
        """
        errors = []
        for d in decoded:
            try:
                self.pool.release_artifact(d.artifact_id)
            except Exception as e:
                logger.error(f"Releasing genome {d.genome.genome_id} failed: {e}")
                errors.append(e)
        return errors
