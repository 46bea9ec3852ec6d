"""
neuro_arena/evolution/genome.py

Genome representations and the decode capability.

A genome is the genotype: identity, evolvable parameters and the fitness
the scheduler writes back. Decoding turns it into a control artifact
(the phenome). Decoding can fail; a non-viable genome simply scores 0.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type
import itertools
import numpy as np

from neuro_arena.core.artifact import NeuralController


class Genome(ABC):
    """
    Abstract base for genome representations.

    A genome must support:
    - A stable identity (genome_id)
    - A mutable fitness field, None until evaluated
    - Serialization (to_dict, from_dict) for the population store
    """

    genome_id: int
    fitness: Optional[float]
    aux_fitness: Optional[Tuple[float, ...]]
    birth_generation: int

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize genome to dictionary."""
        pass

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Genome":
        """Deserialize genome from dictionary."""
        pass

    @property
    def evaluated(self) -> bool:
        return self.fitness is not None


@dataclass(eq=False)
class NetworkGenome(Genome):
    """
    Weights of a fixed-topology feedforward network.

    Topology: inputs + bias -> hidden (tanh) + bias -> outputs (sigmoid).
    With hidden_count == 0, inputs + bias connect straight to outputs.
    """

    genome_id: int
    input_count: int
    output_count: int
    hidden_count: int = 0
    weights: np.ndarray = field(default_factory=lambda: np.zeros(0))
    birth_generation: int = 0
    fitness: Optional[float] = None
    aux_fitness: Optional[Tuple[float, ...]] = None

    def __post_init__(self):
        self.weights = np.asarray(self.weights, dtype=np.float64)

    @staticmethod
    def weight_count(input_count: int, hidden_count: int, output_count: int) -> int:
        if hidden_count == 0:
            return (input_count + 1) * output_count
        return (input_count + 1) * hidden_count + (hidden_count + 1) * output_count

    @property
    def expected_weight_count(self) -> int:
        return self.weight_count(self.input_count, self.hidden_count, self.output_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "NetworkGenome",
            "genome_id": self.genome_id,
            "input_count": self.input_count,
            "hidden_count": self.hidden_count,
            "output_count": self.output_count,
            "weights": self.weights.tolist(),
            "birth_generation": self.birth_generation,
            "fitness": self.fitness,
            "aux_fitness": list(self.aux_fitness) if self.aux_fitness is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkGenome":
        aux = data.get("aux_fitness")
        fitness = data.get("fitness")
        return cls(
            genome_id=int(data["genome_id"]),
            input_count=int(data["input_count"]),
            hidden_count=int(data.get("hidden_count", 0)),
            output_count=int(data["output_count"]),
            weights=np.array(data["weights"], dtype=np.float64),
            birth_generation=int(data.get("birth_generation", 0)),
            fitness=float(fitness) if fitness is not None else None,
            aux_fitness=tuple(aux) if aux is not None else None,
        )

    def mutate(
        self,
        rng: np.random.Generator,
        genome_id: int,
        generation: int,
        rate: float = 0.2,
        sigma: float = 0.5,
    ) -> "NetworkGenome":
        """Gaussian mutation of a random subset of weights. Returns a new genome."""
        mask = rng.random(len(self.weights)) < rate
        weights = self.weights + mask * rng.normal(0.0, sigma, size=len(self.weights))
        return self.child(genome_id, generation, weights)

    def child(self, genome_id: int, generation: int, weights: np.ndarray) -> "NetworkGenome":
        return NetworkGenome(
            genome_id=genome_id,
            input_count=self.input_count,
            hidden_count=self.hidden_count,
            output_count=self.output_count,
            weights=weights,
            birth_generation=generation,
        )


GENOME_TYPES: Dict[str, Type[Genome]] = {
    "NetworkGenome": NetworkGenome,
}


def genome_from_dict(data: Dict[str, Any]) -> Genome:
    """Rebuild a genome from its serialized form using the `type` field."""
    type_name = data.get("type")
    genome_cls = GENOME_TYPES.get(type_name)
    if genome_cls is None:
        raise ValueError(f"Unknown genome type: {type_name}")
    return genome_cls.from_dict(data)


def crossover(
    parent1: NetworkGenome,
    parent2: NetworkGenome,
    rng: np.random.Generator,
    genome_id: int,
    generation: int,
) -> NetworkGenome:
    """
    Uniform crossover between two genomes of the same topology.

    Each weight is taken from either parent with equal probability.
    """
    if len(parent1.weights) != len(parent2.weights):
        raise ValueError("Cannot crossover genomes with different topologies")

    mask = rng.random(len(parent1.weights)) < 0.5
    weights = np.where(mask, parent1.weights, parent2.weights)
    return parent1.child(genome_id, generation, weights)


class GenomeFactory:
    """
    Creates genomes for one network topology and hands out genome ids.

    Ids are unique per factory. Loading a saved population should be
    followed by `observe()` so new ids never collide with loaded ones.
    """

    def __init__(
        self,
        input_count: int,
        output_count: int,
        hidden_count: int = 0,
        weight_range: float = 1.0,
        seed: Optional[int] = None,
    ):
        self.input_count = input_count
        self.output_count = output_count
        self.hidden_count = hidden_count
        self.weight_range = weight_range
        self.rng = np.random.default_rng(seed)
        self._ids = itertools.count()

    @property
    def weight_count(self) -> int:
        return NetworkGenome.weight_count(
            self.input_count, self.hidden_count, self.output_count
        )

    def next_id(self) -> int:
        return next(self._ids)

    def observe(self, genomes: List[Genome]) -> None:
        """Advance the id counter past every id in `genomes`."""
        if not genomes:
            return
        highest = max(g.genome_id for g in genomes)
        current = next(self._ids)
        self._ids = itertools.count(max(current, highest + 1))

    def create_genome(self, generation: int = 0) -> NetworkGenome:
        weights = self.rng.uniform(-self.weight_range, self.weight_range, size=self.weight_count)
        return NetworkGenome(
            genome_id=self.next_id(),
            input_count=self.input_count,
            hidden_count=self.hidden_count,
            output_count=self.output_count,
            weights=weights,
            birth_generation=generation,
        )

    def create_genome_list(self, size: int, generation: int = 0) -> List[NetworkGenome]:
        return [self.create_genome(generation) for _ in range(size)]


class NetworkDecoder:
    """
    Decodes NetworkGenomes into NeuralControllers.

    Returns None for non-viable genomes: non-finite weights or a weight
    vector that does not fit the declared topology.
    """

    def decode(self, genome: Genome) -> Optional[NeuralController]:
        if not isinstance(genome, NetworkGenome):
            return None

        weights = genome.weights
        if len(weights) != genome.expected_weight_count:
            return None
        if not np.all(np.isfinite(weights)):
            return None

        n_in = genome.input_count + 1
        if genome.hidden_count == 0:
            return NeuralController(weights.reshape(genome.output_count, n_in))

        split = genome.hidden_count * n_in
        input_weights = weights[:split].reshape(genome.hidden_count, n_in)
        output_weights = weights[split:].reshape(genome.output_count, genome.hidden_count + 1)
        return NeuralController(input_weights, output_weights)
