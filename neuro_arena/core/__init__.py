"""
Core components of the evaluation scheduler.

- artifact: Control artifacts - the decoded, executable genome
- agent: Pooled agents - bodies that run an artifact
- pool: Free/Bound bookkeeping for agents
- host: The cooperative tick loop and simulated clock
"""

from .artifact import ArtifactId, ControlArtifact, NeuralController
from .agent import Agent
from .pool import AgentPool, AgentBinding
from .host import SimulationHost, HostConfig

__all__ = [
    "ArtifactId",
    "ControlArtifact",
    "NeuralController",
    "Agent",
    "AgentPool",
    "AgentBinding",
    "SimulationHost",
    "HostConfig",
]
