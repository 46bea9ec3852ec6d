"""
neuro_arena/evolution/algorithms.py

A small generational genetic algorithm that drives the scheduler.

Key insight: evaluation is the slow part, and it happens in simulated
time on the host. Everything else is fast and centralized:
- Evaluate the current genome list (suspends on the host)
- Track the champion
- Breed the next genome list

The engine only talks to an evaluator with an async `evaluate()`; it
does not know about agents, pools or trials.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import numpy as np

from .genome import GenomeFactory, NetworkGenome, crossover

logger = logging.getLogger(__name__)


class GenomeListEvaluator(Protocol):
    stop_condition_satisfied: bool

    async def evaluate(self, genomes: Sequence[NetworkGenome]) -> Any:
        ...


@dataclass
class EvolutionConfig:
    """Configuration for the generational engine."""
    population_size: int = 50
    elite_fraction: float = 0.2
    tournament_size: int = 3
    mutation_rate: float = 0.2
    mutation_sigma: float = 0.5
    crossover_rate: float = 0.3
    stop_on_condition: bool = True   # Pause when the evaluator reports its stop condition
    seed: int = 42

    def __post_init__(self):
        if self.population_size < 1:
            raise ValueError(f"population_size must be at least 1, got {self.population_size}")
        if not 0.0 <= self.elite_fraction <= 1.0:
            raise ValueError(f"elite_fraction must be in [0, 1], got {self.elite_fraction}")
        if self.tournament_size < 1:
            raise ValueError(f"tournament_size must be at least 1, got {self.tournament_size}")


class RunState(Enum):
    """Lifecycle of an evolution run."""
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"


class GenerationalEvolution:
    """
    Elitist generational GA with tournament selection.

    Events:
    - update: fired after every completed generation
    - paused: fired whenever `run()` exits, however it exits
    """

    def __init__(
        self,
        config: EvolutionConfig,
        factory: GenomeFactory,
        evaluator: GenomeListEvaluator,
        genome_list: Optional[List[NetworkGenome]] = None,
    ):
        self.config = config
        self.factory = factory
        self.evaluator = evaluator
        self.rng = np.random.default_rng(config.seed)

        if genome_list:
            self.genome_list = list(genome_list)
            self.factory.observe(self.genome_list)
        else:
            self.genome_list = factory.create_genome_list(config.population_size)

        self.generation = 0
        self.champion: Optional[NetworkGenome] = None
        self.run_state = RunState.READY
        self.history: List[Dict[str, Any]] = []

        self.update_handlers: List[Callable[["GenerationalEvolution"], None]] = []
        self.paused_handlers: List[Callable[["GenerationalEvolution"], None]] = []

        self._stop_requested = False

    # ==================== Run loop ====================

    async def run(self, max_generations: Optional[int] = None) -> None:
        """
        Evolve until asked to stop.

        Cancellation mid-generation is allowed: the evaluator releases its
        agents, the interrupted generation keeps no fitness, and the
        paused event still fires.
        """
        self.run_state = RunState.RUNNING
        completed = 0
        logger.info(f"Evolution started with {len(self.genome_list)} genomes")

        try:
            while not self._stop_requested:
                if max_generations is not None and completed >= max_generations:
                    break

                await self.evaluator.evaluate(self.genome_list)
                self._record_generation()
                completed += 1

                for handler in self.update_handlers:
                    handler(self)

                if self.config.stop_on_condition and self.evaluator.stop_condition_satisfied:
                    logger.info("Stop condition satisfied, pausing evolution")
                    break
                if self._stop_requested:
                    break
                if max_generations is not None and completed >= max_generations:
                    break

                self.genome_list = self.reproduce(self.genome_list)

        except asyncio.CancelledError:
            logger.info(f"Evolution interrupted during generation {self.generation}")
            raise

        finally:
            self.run_state = RunState.PAUSED
            self._stop_requested = False
            for handler in self.paused_handlers:
                handler(self)

    def request_stop(self) -> None:
        """Pause after the generation in progress, or right away if not yet started."""
        self._stop_requested = True

    # ==================== Selection & breeding ====================

    def reproduce(self, genomes: Sequence[NetworkGenome]) -> List[NetworkGenome]:
        """Build the next genome list: elites first, then offspring."""
        size = self.config.population_size
        ranked = sorted(genomes, key=lambda g: g.fitness or 0.0, reverse=True)

        n_elite = min(len(ranked), int(round(size * self.config.elite_fraction)))
        offspring: List[NetworkGenome] = list(ranked[:n_elite])

        while len(offspring) < size:
            parent = self._tournament(ranked)
            child_id = self.factory.next_id()

            if self.rng.random() < self.config.crossover_rate and len(ranked) > 1:
                other = self._tournament(ranked)
                child = crossover(parent, other, self.rng, child_id, self.generation)
                child = child.mutate(
                    self.rng, child_id, self.generation,
                    rate=self.config.mutation_rate, sigma=self.config.mutation_sigma,
                )
            else:
                child = parent.mutate(
                    self.rng, child_id, self.generation,
                    rate=self.config.mutation_rate, sigma=self.config.mutation_sigma,
                )
            offspring.append(child)

        return offspring

    def _tournament(self, genomes: Sequence[NetworkGenome]) -> NetworkGenome:
        k = min(self.config.tournament_size, len(genomes))
        picks = self.rng.choice(len(genomes), size=k, replace=False)
        return max((genomes[i] for i in picks), key=lambda g: g.fitness or 0.0)

    # ==================== Statistics ====================

    def _record_generation(self) -> None:
        self.generation += 1
        fitnesses = np.array([g.fitness or 0.0 for g in self.genome_list])

        # Champion is the best genome of the latest generation
        self.champion = max(self.genome_list, key=lambda g: g.fitness or 0.0)

        self.history.append({
            "generation": self.generation,
            "mean_fitness": float(fitnesses.mean()),
            "max_fitness": float(fitnesses.max()),
            "min_fitness": float(fitnesses.min()),
            "champion_fitness": self.champion_fitness,
        })

    @property
    def champion_fitness(self) -> float:
        if self.champion is None or self.champion.fitness is None:
            return 0.0
        return self.champion.fitness

    @property
    def max_fitness(self) -> float:
        """Best fitness in the most recent generation."""
        if not self.history:
            return 0.0
        return self.history[-1]["max_fitness"]

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "population_size": len(self.genome_list),
            "run_state": self.run_state.value,
            "champion_fitness": self.champion_fitness,
            "max_fitness": self.max_fitness,
            "algorithm": self.__class__.__name__,
        }
