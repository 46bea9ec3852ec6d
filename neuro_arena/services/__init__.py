"""
neuro_arena/services/

Running an experiment end to end.

Architecture:
- PopulationStore: save files for populations and champions
- Experiment: topology, factories and load/save policy for one experiment
- EvolutionSupervisor: start, stop and showcase controls over a run
- cli: the `neuro-arena` command

The supervisor wires the host, the pool and the coordinator together and
runs the evolution engine as a task next to the host tick loop.
"""

from .persistence import PopulationStore, PersistenceConfig, ExperimentFileType
from .experiment import Experiment, ExperimentConfig
from .supervisor import EvolutionSupervisor, SupervisorConfig

__all__ = [
    "PopulationStore",
    "PersistenceConfig",
    "ExperimentFileType",
    "Experiment",
    "ExperimentConfig",
    "EvolutionSupervisor",
    "SupervisorConfig",
]
