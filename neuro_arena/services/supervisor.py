"""
neuro_arena/services/supervisor.py

Evolution supervisor service.

The supervisor owns one run of one experiment:
1. Wires host, agent pool, fitness ledger, trial runner and coordinator
2. Starts the evolution engine as a task on the host's event loop
3. Stops it on request, saving population and champion
4. Shows off the saved champion on a single agent

Every method is called from the event loop thread; there is no locking.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from neuro_arena.core.agent import Agent
from neuro_arena.core.artifact import ArtifactId
from neuro_arena.core.host import HostConfig, SimulationHost
from neuro_arena.core.pool import AgentPool
from neuro_arena.evaluation.coordinator import EvaluationConfig, GenerationCoordinator
from neuro_arena.evaluation.trials import TrialRunner
from neuro_arena.evolution.algorithms import GenerationalEvolution, RunState
from neuro_arena.evolution.fitness import FitnessLedger

from .experiment import Experiment

logger = logging.getLogger(__name__)


@dataclass
class SupervisorConfig:
    """Configuration for the evolution supervisor."""
    trials: int = 1                 # Trials per generation
    trial_duration: float = 20.0    # Simulated seconds per trial
    stopping_fitness: float = 15.0  # Pause once a genome scores above this
    host: HostConfig = field(default_factory=HostConfig)

    def evaluation_config(self) -> EvaluationConfig:
        return EvaluationConfig(
            trials=self.trials,
            trial_duration=self.trial_duration,
            stopping_fitness=self.stopping_fitness,
        )


class EvolutionSupervisor:
    """
    Control surface for an evolution run.

    The fitness capability handed to the trial runner is the pool's
    `sample_fitness`, so agents never reach back into the supervisor.
    """

    def __init__(
        self,
        experiment: Experiment,
        agent_factory: Callable[[str], Agent],
        config: Optional[SupervisorConfig] = None,
    ):
        self.experiment = experiment
        self.config = config or SupervisorConfig()

        self.host = SimulationHost(self.config.host)
        self.pool = AgentPool(agent_factory, on_spawn=self.host.attach)
        self.ledger = FitnessLedger()
        self.runner = TrialRunner(
            decoder=experiment.decoder,
            pool=self.pool,
            host=self.host,
            ledger=self.ledger,
            sampler=self.pool.sample_fitness,
            trial_duration=self.config.trial_duration,
        )
        self.coordinator = GenerationCoordinator(self.runner, self.config.evaluation_config())

        self.evolution: Optional[GenerationalEvolution] = None
        self.current_generation = 0
        self.current_best_fitness = 0.0
        self.last_error: Optional[BaseException] = None

        self._task: Optional[asyncio.Task] = None
        self._host_task: Optional[asyncio.Task] = None
        self._showcase_id: Optional[ArtifactId] = None
        self._start_time: Optional[float] = None

        experiment.log_save_paths()

    # ==================== Lifecycle ====================

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_evolution(self, max_generations: Optional[int] = None) -> bool:
        """
        Start (or continue) evolution from the saved population.

        Must be called from a running event loop. Returns False if a run
        is already in progress.
        """
        if self.running:
            return False

        self.pool.release_all()
        self._showcase_id = None
        self.coordinator.reset()

        logger.info(f"Starting experiment '{self.experiment.name}'")
        self._start_time = time.time()

        self.evolution = self.experiment.create_evolution(self.coordinator)
        self.evolution.update_handlers.append(self._handle_update)
        self.evolution.paused_handlers.append(self._handle_paused)

        self._ensure_host()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self.evolution.run(max_generations))
        self._task.add_done_callback(self._on_run_finished)
        return True

    async def stop_evolution(self) -> None:
        """
        Release every agent, then stop the run.

        The generation in progress is abandoned; the pause handler saves
        the population and champion.
        """
        self.pool.release_all()
        self._showcase_id = None

        if not self.running:
            return

        self.evolution.request_stop()
        if self.evolution.run_state is RunState.READY:
            # Not started yet: run() exits on its own and still pauses
            await self._task
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> None:
        """Wait for the current run to finish on its own."""
        if self._task is not None:
            await self._task

    async def run_best(self) -> bool:
        """
        Stop evolution and let the saved champion drive one agent.

        Returns False when there is no usable champion.
        """
        await self.stop_evolution()

        champion = self.experiment.load_champion()
        if champion is None:
            return False

        artifact = self.experiment.decoder.decode(champion)
        if artifact is None:
            logger.warning(f"Champion {champion.genome_id} could not be decoded")
            return False

        self._showcase_id = self.runner.next_artifact_id()
        agent = self.pool.acquire(artifact, self._showcase_id)
        self._ensure_host()
        logger.info(
            f"Running champion {champion.genome_id} "
            f"(fitness {champion.fitness}) on {agent.id}"
        )
        return True

    def showcase_fitness(self) -> Optional[float]:
        """Current fitness of the champion being shown, if any."""
        if self._showcase_id is None or self.pool.binding_for(self._showcase_id) is None:
            return None
        return self.pool.sample_fitness(self._showcase_id)

    def set_time_scale(self, time_scale: float) -> None:
        self.host.time_scale = time_scale

    async def shutdown(self) -> None:
        """Stop evolution and the host loop."""
        await self.stop_evolution()
        self.host.stop()
        if self._host_task is not None:
            await self._host_task
            self._host_task = None

    # ==================== Internal ====================

    def _ensure_host(self) -> None:
        if self._host_task is None or self._host_task.done():
            loop = asyncio.get_running_loop()
            self._host_task = loop.create_task(self.host.run())

    def _handle_update(self, evolution: GenerationalEvolution) -> None:
        self.current_generation = evolution.generation
        self.current_best_fitness = evolution.max_fitness
        logger.info(
            f"Generation={self.current_generation} "
            f"BestFitness={self.current_best_fitness:.6f}"
        )

    def _handle_paused(self, evolution: GenerationalEvolution) -> None:
        logger.info("Evolution paused, saving population and champion")
        self.experiment.save_population(evolution.genome_list)
        self.experiment.save_champion(evolution.champion)
        if self._start_time is not None:
            logger.info(f"Total time elapsed: {time.time() - self._start_time:.1f}s")

    def _on_run_finished(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.last_error = error
            logger.error(f"Evolution run failed: {error!r}")

    def get_status(self) -> Dict[str, Any]:
        return {
            "experiment": self.experiment.name,
            "running": self.running,
            "run_state": (
                self.evolution.run_state.value if self.evolution else RunState.READY.value
            ),
            "generation": self.current_generation,
            "best_fitness": self.current_best_fitness,
            "stop_condition": self.coordinator.stop_condition_satisfied,
            "sim_time": self.host.time,
            "time_scale": self.host.time_scale,
            "pool": {
                "size": len(self.pool),
                "free": self.pool.free_count,
                "bound": self.pool.bound_count,
            },
            "showcase": self._showcase_id is not None,
        }
