"""
Tests for neuro_arena/core/pool.py

Tests acquire/release bookkeeping, reuse, and failure rollback.
"""

import pytest
import numpy as np

from neuro_arena.core.agent import Agent
from neuro_arena.core.artifact import ControlArtifact
from neuro_arena.core.pool import AgentPool
from neuro_arena.errors import BindingConflictError, UnboundArtifactError


class StubArtifact(ControlArtifact):
    def __init__(self):
        self.input_signals = np.zeros(1)
        self.output_signals = np.zeros(1)

    def activate(self):
        pass


class CountingAgent(Agent):
    """Agent that counts its lifecycle transitions."""

    def __init__(self, agent_id, fitness=1.0):
        super().__init__(agent_id)
        self.fitness = fitness
        self.activations = 0
        self.deactivations = 0
        self.fail_on_activate = False
        self.fail_on_deactivate = False

    def update_inputs(self, input_signals):
        pass

    def apply_outputs(self, output_signals, dt):
        pass

    def get_fitness(self):
        return self.fitness

    def handle_activation(self):
        self.activations += 1
        if self.fail_on_activate:
            raise RuntimeError("activation failed")

    def handle_deactivation(self):
        self.deactivations += 1
        if self.fail_on_deactivate:
            raise RuntimeError("deactivation failed")


# ==================== Acquire ====================

class TestAcquire:
    """Tests for binding artifacts to agents."""

    def test_spawns_when_free_set_empty(self):
        """Acquire constructs an agent when none is free."""
        pool = AgentPool(CountingAgent)
        agent = pool.acquire(StubArtifact(), 0)

        assert pool.created_count == 1
        assert pool.bound_count == 1
        assert pool.free_count == 0
        assert agent.is_active
        assert agent.activations == 1

    def test_reuses_free_agent(self):
        """A released agent is handed out again instead of a new one."""
        pool = AgentPool(CountingAgent)
        first = pool.acquire(StubArtifact(), 0)
        pool.release(first)

        second = pool.acquire(StubArtifact(), 1)

        assert second is first
        assert pool.created_count == 1

    def test_reuse_order_follows_release_order(self):
        """Free agents come back in the order they were released."""
        pool = AgentPool(CountingAgent)
        a = pool.acquire(StubArtifact(), 0)
        b = pool.acquire(StubArtifact(), 1)
        pool.release(b)
        pool.release(a)

        assert pool.acquire(StubArtifact(), 2) is b
        assert pool.acquire(StubArtifact(), 3) is a

    def test_duplicate_artifact_id_rejected(self):
        """An artifact id can only be bound once."""
        pool = AgentPool(CountingAgent)
        pool.acquire(StubArtifact(), 7)

        with pytest.raises(BindingConflictError):
            pool.acquire(StubArtifact(), 7)
        assert pool.bound_count == 1

    def test_on_spawn_called_for_new_agents_only(self):
        """The spawn hook sees each constructed agent exactly once."""
        spawned = []
        pool = AgentPool(CountingAgent, on_spawn=spawned.append)

        agent = pool.acquire(StubArtifact(), 0)
        pool.release(agent)
        pool.acquire(StubArtifact(), 1)

        assert spawned == [agent]

    def test_agent_ids_are_unique(self):
        """Constructed agents get distinct ids."""
        pool = AgentPool(CountingAgent, id_prefix="car")
        agents = [pool.acquire(StubArtifact(), i) for i in range(3)]

        assert [a.id for a in agents] == ["car_0", "car_1", "car_2"]

    def test_activation_failure_rolls_back(self):
        """An agent whose activation hook raises ends up Free again."""
        def factory(agent_id):
            agent = CountingAgent(agent_id)
            agent.fail_on_activate = True
            return agent

        pool = AgentPool(factory)
        with pytest.raises(RuntimeError):
            pool.acquire(StubArtifact(), 0)

        assert pool.bound_count == 0
        assert pool.free_count == 1
        assert not pool.agents[0].is_active


# ==================== Release ====================

class TestRelease:
    """Tests for returning agents to the pool."""

    def test_double_release_is_safe(self):
        """Releasing a Free agent is a no-op."""
        pool = AgentPool(CountingAgent)
        agent = pool.acquire(StubArtifact(), 0)

        pool.release(agent)
        pool.release(agent)

        assert pool.free_count == 1
        assert pool.bound_count == 0
        assert pool.release_count == 1
        assert agent.deactivations == 1

    def test_release_resets_agent(self):
        """A released agent holds no artifact and is inactive."""
        pool = AgentPool(CountingAgent)
        agent = pool.acquire(StubArtifact(), 0)
        pool.release(agent)

        assert agent.artifact is None
        assert not agent.is_active
        assert not pool.is_bound(agent)

    def test_release_artifact_unknown_id(self):
        """Releasing an id that is not bound does nothing."""
        pool = AgentPool(CountingAgent)
        pool.release_artifact(42)
        assert pool.release_count == 0

    def test_release_all(self):
        """release_all frees every bound agent."""
        pool = AgentPool(CountingAgent)
        for i in range(4):
            pool.acquire(StubArtifact(), i)

        assert pool.release_all() == 4
        assert pool.bound_count == 0
        assert pool.free_count == 4
        assert pool.acquire_count == pool.release_count

    def test_release_all_continues_past_failures(self):
        """A failing deactivation hook does not leave other agents bound."""
        pool = AgentPool(CountingAgent)
        first = pool.acquire(StubArtifact(), 0)
        pool.acquire(StubArtifact(), 1)
        first.fail_on_deactivate = True

        with pytest.raises(RuntimeError):
            pool.release_all()

        assert pool.bound_count == 0
        assert pool.free_count == 2


# ==================== Fitness capability ====================

class TestSampleFitness:
    """Tests for the fitness capability exposed by the pool."""

    def test_reads_bound_agent(self):
        """Fitness comes from the agent bound to the artifact."""
        pool = AgentPool(lambda agent_id: CountingAgent(agent_id, fitness=3.5))
        pool.acquire(StubArtifact(), 5)

        assert pool.sample_fitness(5) == 3.5

    def test_unbound_artifact_raises(self):
        """Sampling an unbound artifact is an error."""
        pool = AgentPool(CountingAgent)

        with pytest.raises(UnboundArtifactError):
            pool.sample_fitness(0)

    def test_unbound_error_is_key_error(self):
        """UnboundArtifactError can be handled as a KeyError."""
        pool = AgentPool(CountingAgent)

        with pytest.raises(KeyError):
            pool.sample_fitness(0)
