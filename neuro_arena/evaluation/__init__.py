"""
neuro_arena/evaluation/

Turns genome lists into fitness values.

- TrialRunner: decode, bind, wait one trial window, sample
- GenerationCoordinator: runs every trial of a generation and averages
"""

from .trials import TrialRunner, DecodedGenome, GenomeDecoder
from .coordinator import GenerationCoordinator, EvaluationConfig, GenerationReport

__all__ = [
    "TrialRunner",
    "DecodedGenome",
    "GenomeDecoder",
    "GenerationCoordinator",
    "EvaluationConfig",
    "GenerationReport",
]
