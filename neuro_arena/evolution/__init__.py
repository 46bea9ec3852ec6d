"""
Evolutionary machinery: genomes, fitness bookkeeping and the GA.
"""

from .fitness import FitnessSample, FitnessLedger, mean_fitness
from .genome import Genome, NetworkGenome, GenomeFactory, NetworkDecoder, genome_from_dict
from .algorithms import GenerationalEvolution, EvolutionConfig, RunState

__all__ = [
    "FitnessSample",
    "FitnessLedger",
    "mean_fitness",
    "Genome",
    "NetworkGenome",
    "GenomeFactory",
    "NetworkDecoder",
    "genome_from_dict",
    "GenerationalEvolution",
    "EvolutionConfig",
    "RunState",
]
