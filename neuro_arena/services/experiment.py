"""
neuro_arena/services/experiment.py

An experiment: a named network topology plus its saved population and
champion.

Loading never leaves the caller empty-handed. A missing or unreadable
population file falls back to a fresh population of the default size,
and a missing champion is reported as None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from neuro_arena.errors import PersistenceReadFailure
from neuro_arena.evolution.algorithms import (
    EvolutionConfig,
    GenerationalEvolution,
    GenomeListEvaluator,
)
from neuro_arena.evolution.genome import (
    Genome,
    GenomeFactory,
    NetworkDecoder,
    NetworkGenome,
)

from .persistence import ExperimentFileType, PersistenceConfig, PopulationStore

logger = logging.getLogger(__name__)


@dataclass
class ExperimentConfig:
    """Configuration for one experiment."""
    name: str = "car_track"
    description: str = "Cars learning to drive laps around a ring track"
    population_size: int = 50       # Default size of a fresh population
    input_count: int = 5            # Wall sensors
    output_count: int = 2           # Steer, gas
    hidden_count: int = 6
    seed: int = 42
    evolution: EvolutionConfig = field(default_factory=EvolutionConfig)

    def __post_init__(self):
        if not self.name:
            raise ValueError("experiment name must not be empty")
        if self.population_size < 1:
            raise ValueError(f"population_size must be at least 1, got {self.population_size}")
        self.evolution.population_size = self.population_size
        self.evolution.seed = self.seed


class Experiment:
    """Binds an experiment config to a population store."""

    def __init__(
        self,
        config: Optional[ExperimentConfig] = None,
        store: Optional[PopulationStore] = None,
    ):
        self.config = config or ExperimentConfig()
        self.store = store or PopulationStore(PersistenceConfig.from_env())
        self.decoder = self.create_decoder()

    @property
    def name(self) -> str:
        return self.config.name

    # ==================== Factories ====================

    def create_decoder(self) -> NetworkDecoder:
        return NetworkDecoder()

    def create_genome_factory(self) -> GenomeFactory:
        return GenomeFactory(
            input_count=self.config.input_count,
            output_count=self.config.output_count,
            hidden_count=self.config.hidden_count,
            seed=self.config.seed,
        )

    def create_evolution(
        self,
        evaluator: GenomeListEvaluator,
        genome_list: Optional[List[NetworkGenome]] = None,
    ) -> GenerationalEvolution:
        """
        Build an engine for this experiment.

        Without an explicit genome list the saved population is loaded
        (or a fresh one is created).
        """
        factory = self.create_genome_factory()
        if genome_list is None:
            genome_list = self.load_population(factory)
        return GenerationalEvolution(
            self.config.evolution, factory, evaluator, genome_list=genome_list
        )

    # ==================== Loading ====================

    def load_population(self, factory: Optional[GenomeFactory] = None) -> List[NetworkGenome]:
        """
        Saved population, or a fresh default-size population if it cannot
        be read.
        """
        factory = factory or self.create_genome_factory()
        try:
            genomes = self.store.load(self.name, ExperimentFileType.POPULATION)
        except PersistenceReadFailure as e:
            logger.warning(
                f"Population of '{self.name}' not loaded ({e.kind}): {e}. "
                f"Creating {self.config.population_size} new genomes"
            )
            return factory.create_genome_list(self.config.population_size)

        usable = [g for g in genomes if self._fits_topology(g)]
        if len(usable) < len(genomes):
            logger.warning(
                f"Dropped {len(genomes) - len(usable)} saved genomes with a "
                f"different topology"
            )
        if not usable:
            logger.warning(f"Saved population of '{self.name}' is empty, creating a new one")
            return factory.create_genome_list(self.config.population_size)
        return usable

    def load_champion(self) -> Optional[Genome]:
        """The saved champion, or None when there is no champion available."""
        try:
            genomes = self.store.load(self.name, ExperimentFileType.CHAMPION)
        except PersistenceReadFailure as e:
            logger.warning(f"No champion available for '{self.name}' ({e.kind})")
            return None

        if not genomes:
            logger.warning(f"No champion available for '{self.name}' (empty file)")
            return None
        return genomes[0]

    def _fits_topology(self, genome: Genome) -> bool:
        return (
            isinstance(genome, NetworkGenome)
            and genome.input_count == self.config.input_count
            and genome.output_count == self.config.output_count
            and genome.hidden_count == self.config.hidden_count
        )

    # ==================== Saving ====================

    def save_population(self, genomes: Sequence[Genome]) -> bool:
        return self.store.save(self.name, ExperimentFileType.POPULATION, genomes)

    def save_champion(self, champion: Optional[Genome]) -> bool:
        if champion is None:
            return False
        return self.store.save(self.name, ExperimentFileType.CHAMPION, [champion])

    def delete_save_files(self) -> int:
        removed = self.store.delete_all(self.name)
        logger.info(f"Deleted {removed} save files of '{self.name}'")
        return removed

    def log_save_paths(self) -> None:
        for kind in ExperimentFileType:
            logger.info(
                f"{kind.name.capitalize()} save file: "
                f"{self.store.path_for(self.name, kind)}"
            )
