"""
core/pool.py

Object pooling for agents.

Agents are expensive to construct, so they are never destroyed during a
run. The pool keeps a Free set and a Bound map. Acquiring draws from the
Free set first and only constructs a new agent when it is empty.

The pool is owned by the coordinator task. Nothing else binds or
releases agents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

from neuro_arena.errors import BindingConflictError, UnboundArtifactError

from .agent import Agent
from .artifact import ArtifactId, ControlArtifact

logger = logging.getLogger(__name__)


@dataclass
class AgentBinding:
    """The live pairing of one artifact with one agent."""
    artifact_id: ArtifactId
    artifact: ControlArtifact
    agent: Agent


class AgentPool:
    """
    Reusable agent instances indexed by availability.

    Free agents are handed out in the order they were released, so reuse
    is deterministic. There is no hard cap on growth; the guarantee that
    keeps the pool small is that every acquire is matched by a release.
    """

    def __init__(
        self,
        factory: Callable[[str], Agent],
        on_spawn: Optional[Callable[[Agent], None]] = None,
        id_prefix: str = "agent",
    ):
        self.factory = factory
        self.on_spawn = on_spawn
        self.id_prefix = id_prefix

        self._free: List[Agent] = []
        self._bound: Dict[ArtifactId, AgentBinding] = {}
        self._by_agent: Dict[str, ArtifactId] = {}
        self._agents: List[Agent] = []

        self.created_count = 0
        self.acquire_count = 0
        self.release_count = 0

    # ==================== Binding ====================

    def acquire(self, artifact: ControlArtifact, artifact_id: ArtifactId) -> Agent:
        """
        Bind an artifact to a Free agent and activate it.

        Reuses a Free agent if one exists, otherwise constructs one.
        """
        if artifact_id in self._bound:
            raise BindingConflictError(
                f"artifact {artifact_id} is already bound to "
                f"{self._bound[artifact_id].agent.id}"
            )

        if self._free:
            agent = self._free.pop(0)
        else:
            agent = self._spawn()

        self._bound[artifact_id] = AgentBinding(artifact_id, artifact, agent)
        self._by_agent[agent.id] = artifact_id
        self.acquire_count += 1

        try:
            agent.activate(artifact)
        except Exception:
            self.release(agent)
            raise
        logger.debug(f"Bound artifact {artifact_id} to {agent.id}")
        return agent

    def release(self, agent: Agent) -> None:
        """
        Unbind an agent and return it to the Free set.

        Releasing a Free agent does nothing. The agent is Free afterwards
        even if its deactivation hook raises.
        """
        artifact_id = self._by_agent.pop(agent.id, None)
        if artifact_id is None:
            return

        del self._bound[artifact_id]
        self._free.append(agent)
        self.release_count += 1
        logger.debug(f"Released {agent.id} from artifact {artifact_id}")

        agent.deactivate()

    def release_artifact(self, artifact_id: ArtifactId) -> None:
        """Release whichever agent holds this artifact, if any."""
        binding = self._bound.get(artifact_id)
        if binding is not None:
            self.release(binding.agent)

    def release_all(self) -> int:
        """
        Release every bound agent.

        Each release is attempted even if an earlier one raised; the first
        error is re-raised once all agents are Free.

        Returns the number of agents released.
        """
        bindings = list(self._bound.values())
        first_error: Optional[Exception] = None

        for binding in bindings:
            try:
                self.release(binding.agent)
            except Exception as e:
                logger.error(f"Deactivation of {binding.agent.id} failed: {e}")
                if first_error is None:
                    first_error = e

        if bindings:
            logger.info(f"Released {len(bindings)} bound agents")
        if first_error is not None:
            raise first_error
        return len(bindings)

    # ==================== Capabilities ====================

    def sample_fitness(self, artifact_id: ArtifactId) -> float:
        """Fitness of the agent currently running this artifact."""
        binding = self._bound.get(artifact_id)
        if binding is None:
            raise UnboundArtifactError(f"artifact {artifact_id} is not bound")
        return float(binding.agent.get_fitness())

    # ==================== Introspection ====================

    def binding_for(self, artifact_id: ArtifactId) -> Optional[AgentBinding]:
        return self._bound.get(artifact_id)

    def is_bound(self, agent: Agent) -> bool:
        return agent.id in self._by_agent

    @property
    def free_count(self) -> int:
        return len(self._free)

    @property
    def bound_count(self) -> int:
        return len(self._bound)

    @property
    def agents(self) -> List[Agent]:
        """Every agent ever constructed by this pool, in creation order."""
        return list(self._agents)

    def bindings(self) -> Iterator[AgentBinding]:
        return iter(list(self._bound.values()))

    # ==================== Internal ====================

    def _spawn(self) -> Agent:
        agent = self.factory(f"{self.id_prefix}_{self.created_count}")
        self.created_count += 1
        self._agents.append(agent)
        logger.debug(f"Constructed {agent.id} (pool size {len(self._agents)})")

        if self.on_spawn is not None:
            self.on_spawn(agent)
        return agent

    def __len__(self) -> int:
        return len(self._agents)

    def __repr__(self) -> str:
        return (
            f"AgentPool(size={len(self._agents)}, "
            f"free={self.free_count}, "
            f"bound={self.bound_count})"
        )
