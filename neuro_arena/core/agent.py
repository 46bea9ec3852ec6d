"""
core/agent.py

A pooled agent: long-lived, reused across generations, never destroyed.

An agent is a body. The control artifact bound to it is the brain.
While bound, the host steps the agent once per tick: sense, think, act.
While free, it sits hidden and reset, waiting for the next brain.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional
import numpy as np

from .artifact import ControlArtifact


class Agent(ABC):
    """
    Abstract base for agents driven by a control artifact.

    Two states:
    - Free: no artifact, inactive, invisible
    - Bound: holds exactly one artifact, stepped by the host

    Subclasses implement sensing, acting, scoring and the two transition
    hooks. Both hooks must restore the agent's per-episode state to its
    initial snapshot so a reused instance carries nothing over.
    """

    def __init__(self, agent_id: str):
        self.id = agent_id
        self.artifact: Optional[ControlArtifact] = None
        self.visible = False
        self.steps = 0

        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    # ==================== Lifecycle ====================

    def activate(self, artifact: ControlArtifact) -> None:
        """Free -> Bound. Called by the pool, never directly."""
        self.artifact = artifact
        self.steps = 0
        if not self._active:
            self._active = True
            self.handle_activation()

    def deactivate(self) -> None:
        """Bound -> Free. Called by the pool, never directly."""
        self.artifact = None
        if self._active:
            self._active = False
            self.handle_deactivation()

    def step(self, dt: float) -> None:
        """
        One host tick.

        Feed the artifact, activate it, use its outputs.
        Inactive agents do nothing.
        """
        if not self._active or self.artifact is None:
            return

        self.update_inputs(self.artifact.input_signals)
        self.artifact.activate()
        self.apply_outputs(self.artifact.output_signals, dt)
        self.steps += 1

    # ==================== Agent-specific ====================

    @abstractmethod
    def update_inputs(self, input_signals: np.ndarray) -> None:
        """Write sensor readings into the artifact's input vector."""
        pass

    @abstractmethod
    def apply_outputs(self, output_signals: np.ndarray, dt: float) -> None:
        """Act on the artifact's output vector for one tick of length dt."""
        pass

    @abstractmethod
    def get_fitness(self) -> float:
        """How well this agent has done since it was bound."""
        pass

    @abstractmethod
    def handle_activation(self) -> None:
        """Reset per-episode state and enable behaviour."""
        pass

    @abstractmethod
    def handle_deactivation(self) -> None:
        """Reset per-episode state and disable behaviour."""
        pass

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(id={self.id}, "
            f"active={self._active}, "
            f"steps={self.steps})"
        )
