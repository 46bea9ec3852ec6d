"""
neuro_arena/evaluation/coordinator.py

Generation-level evaluation.

The coordinator turns a genome list into fitness values:
1. Clear the ledger (no stale samples from the previous generation)
2. Run the configured number of trials (decode and bind on the first)
3. Average each genome's per-trial samples and write the mean back
4. Release every agent, on every exit path

Bindings persist across the trials of one generation, so an agent keeps
its artifact from the first trial to the last and is only released at
the end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from neuro_arena.core.artifact import ArtifactId
from neuro_arena.errors import PoolExhaustionEscape
from neuro_arena.evolution.fitness import FitnessSample, mean_fitness
from neuro_arena.evolution.genome import Genome

from .trials import DecodedGenome, TrialRunner

logger = logging.getLogger(__name__)


@dataclass
class EvaluationConfig:
    """Configuration for generational evaluation."""
    trials: int = 1                 # Trials per generation
    trial_duration: float = 20.0    # Simulated seconds per trial
    stopping_fitness: float = 15.0  # Mean fitness that signals the run may stop

    def __post_init__(self):
        if self.trials < 1:
            raise ValueError(f"trials must be at least 1, got {self.trials}")
        if self.trial_duration <= 0:
            raise ValueError(f"trial_duration must be positive, got {self.trial_duration}")


@dataclass
class GenerationReport:
    """Outcome of one evaluated generation."""
    generation: int
    fitness: List[float]
    decode_failures: int = 0
    stop_condition: bool = False
    sim_time: float = 0.0
    trial_means: List[float] = field(default_factory=list)

    @property
    def best_index(self) -> Optional[int]:
        if not self.fitness:
            return None
        return max(range(len(self.fitness)), key=lambda i: self.fitness[i])

    @property
    def best_fitness(self) -> float:
        return max(self.fitness) if self.fitness else 0.0

    @property
    def mean_fitness(self) -> float:
        return sum(self.fitness) / len(self.fitness) if self.fitness else 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "generation": self.generation,
            "genomes": len(self.fitness),
            "best_fitness": self.best_fitness,
            "mean_fitness": self.mean_fitness,
            "decode_failures": self.decode_failures,
            "stop_condition": self.stop_condition,
            "sim_time": self.sim_time,
        }


class GenerationCoordinator:
    """
    Evaluates whole generations through a TrialRunner.

    Guarantees on return (and on cancellation):
    - no agent is left bound
    - the ledger is empty

    A cancelled generation writes no fitness for its bound genomes; the
    samples gathered so far are thrown away.
    """

    def __init__(self, runner: TrialRunner, config: Optional[EvaluationConfig] = None):
        self.runner = runner
        self.config = config or EvaluationConfig(trial_duration=runner.trial_duration)
        if self.config.trial_duration != runner.trial_duration:
            raise ValueError(
                f"trial_duration {self.config.trial_duration} does not match "
                f"the runner's {runner.trial_duration}"
            )

        self.generation = 0
        self.evaluation_count = 0
        self.stop_condition_satisfied = False

    @property
    def pool(self):
        return self.runner.pool

    @property
    def ledger(self):
        return self.runner.ledger

    def reset(self) -> None:
        """Forget stop condition and counters (new run)."""
        self.ledger.clear()
        self.generation = 0
        self.evaluation_count = 0
        self.stop_condition_satisfied = False

    async def evaluate(self, genomes: Sequence[Genome]) -> GenerationReport:
        """
        Score every genome in the list.

        Suspends on the host for `trials * trial_duration` simulated
        seconds. Every genome has a fitness when this returns.
        """
        self.ledger.clear()
        self.stop_condition_satisfied = False
        trials = self.config.trials
        start_time = self.runner.host.time

        decoded: List[DecodedGenome] = []
        samples: Dict[ArtifactId, List[FitnessSample]] = {}
        decode_failures = 0
        trial_means: List[float] = []

        try:
            for trial in range(trials):
                if trial == 0:
                    viable = self.runner.decode(genomes)
                    decoded = self.runner.bind(viable)
                    decode_failures = len(genomes) - len(decoded)
                    samples = {d.artifact_id: [] for d in decoded}

                await self.runner.run_trial(decoded, trial)

                for d in decoded:
                    samples[d.artifact_id].append(self.ledger.take(d.artifact_id))

                if decoded:
                    trial_means.append(
                        sum(samples[d.artifact_id][-1].fitness for d in decoded) / len(decoded)
                    )

            self._write_fitness(decoded, samples, trials)

        finally:
            errors = self.runner.release(decoded)
            self.ledger.clear()
            if errors:
                logger.error(f"{len(errors)} agents raised while being released")

        leaked = [
            self.pool.binding_for(d.artifact_id).agent.id
            for d in decoded
            if self.pool.binding_for(d.artifact_id) is not None
        ]
        if leaked:
            raise PoolExhaustionEscape(
                f"{len(leaked)} agents still bound after generation "
                f"{self.generation}: {leaked}"
            )

        report = GenerationReport(
            generation=self.generation,
            fitness=[g.fitness if g.fitness is not None else 0.0 for g in genomes],
            decode_failures=decode_failures,
            stop_condition=self.stop_condition_satisfied,
            sim_time=self.runner.host.time - start_time,
            trial_means=trial_means,
        )
        self.evaluation_count += len(genomes)
        self.generation += 1

        logger.info(
            f"Generation {report.generation} evaluated: "
            f"{len(genomes)} genomes, best {report.best_fitness:.4f}, "
            f"mean {report.mean_fitness:.4f}"
        )
        return report

    def _write_fitness(
        self,
        decoded: Sequence[DecodedGenome],
        samples: Dict[ArtifactId, List[FitnessSample]],
        trials: int,
    ) -> None:
        for d in decoded:
            genome_samples = samples[d.artifact_id]
            fitness = mean_fitness(genome_samples, trials)

            if fitness > self.config.stopping_fitness and not self.stop_condition_satisfied:
                logger.info(
                    f"Genome {d.genome.genome_id} reached fitness {fitness:.4f}, "
                    f"above stopping fitness {self.config.stopping_fitness}"
                )
                self.stop_condition_satisfied = True

            d.genome.fitness = fitness
            d.genome.aux_fitness = genome_samples[0].auxiliary if genome_samples else None
