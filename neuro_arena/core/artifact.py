"""
core/artifact.py

Control artifacts: the executable side of a genome.

A genome is the genotype. The artifact is the phenome that actually
drives an agent: it exposes an input vector, an output vector and a
single activation step. Agents write inputs, activate, read outputs.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional
import numpy as np

ArtifactId = int


class ControlArtifact(ABC):
    """
    Abstract executable control unit.

    The scheduler never looks inside an artifact. It only hands it to an
    agent, which reads and writes the signal arrays once per host tick.
    """

    input_signals: np.ndarray
    output_signals: np.ndarray

    @property
    def input_count(self) -> int:
        return len(self.input_signals)

    @property
    def output_count(self) -> int:
        return len(self.output_signals)

    @abstractmethod
    def activate(self) -> None:
        """Compute output_signals from the current input_signals."""
        pass

    def reset(self) -> None:
        """Clear signal arrays (and any recurrent state)."""
        self.input_signals[:] = 0.0
        self.output_signals[:] = 0.0


def _sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class NeuralController(ControlArtifact):
    """
    Fixed-topology feedforward network.

    Layout: inputs (+bias) -> tanh hidden layer (+bias) -> sigmoid outputs.
    With hidden_count == 0 the inputs connect straight to the outputs.
    Outputs live in [0, 1]; agents rescale them as they see fit.
    """

    def __init__(
        self,
        input_weights: np.ndarray,
        output_weights: Optional[np.ndarray] = None,
    ):
        # input_weights: (hidden or outputs, inputs + 1)
        # output_weights: (outputs, hidden + 1) or None for direct wiring
        self.input_weights = np.asarray(input_weights, dtype=np.float64)
        self.output_weights = (
            None if output_weights is None
            else np.asarray(output_weights, dtype=np.float64)
        )

        input_count = self.input_weights.shape[1] - 1
        if self.output_weights is None:
            output_count = self.input_weights.shape[0]
        else:
            output_count = self.output_weights.shape[0]

        self.input_signals = np.zeros(input_count)
        self.output_signals = np.zeros(output_count)

    @property
    def hidden_count(self) -> int:
        return 0 if self.output_weights is None else self.input_weights.shape[0]

    def activate(self) -> None:
        x = np.append(self.input_signals, 1.0)
        if self.output_weights is None:
            self.output_signals[:] = _sigmoid(self.input_weights @ x)
            return

        hidden = np.tanh(self.input_weights @ x)
        self.output_signals[:] = _sigmoid(self.output_weights @ np.append(hidden, 1.0))

    def __repr__(self) -> str:
        return (
            f"NeuralController(inputs={self.input_count}, "
            f"hidden={self.hidden_count}, "
            f"outputs={self.output_count})"
        )
