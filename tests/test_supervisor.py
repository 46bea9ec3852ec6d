"""
Tests for neuro_arena/services/supervisor.py and neuro_arena/services/cli.py

Runs short evolutions of cars on the ring track end to end.
"""

import asyncio

import pytest

from neuro_arena.core.host import HostConfig
from neuro_arena.environments.track import create_car_factory
from neuro_arena.evolution.genome import GenomeFactory
from neuro_arena.services.cli import build_parser, run_async
from neuro_arena.services.experiment import Experiment, ExperimentConfig
from neuro_arena.services.persistence import (
    ExperimentFileType,
    PersistenceConfig,
    PopulationStore,
)
from neuro_arena.services.supervisor import EvolutionSupervisor, SupervisorConfig


def make_supervisor(tmp_path, population_size=4, trials=1):
    experiment = Experiment(
        ExperimentConfig(name="cars", population_size=population_size, hidden_count=2),
        store=PopulationStore(PersistenceConfig(data_dir=tmp_path)),
    )
    config = SupervisorConfig(
        trials=trials,
        trial_duration=0.5,
        stopping_fitness=1e9,
        host=HostConfig(fixed_delta=0.05),
    )
    return EvolutionSupervisor(experiment, create_car_factory(), config)


class TestSupervisorConfig:

    def test_evaluation_config(self):
        config = SupervisorConfig(trials=3, trial_duration=5.0, stopping_fitness=2.0)
        evaluation = config.evaluation_config()

        assert evaluation.trials == 3
        assert evaluation.trial_duration == 5.0
        assert evaluation.stopping_fitness == 2.0


class TestEvolutionSupervisor:
    """Tests for the start/stop/showcase controls."""

    @pytest.mark.asyncio
    async def test_runs_generations_and_saves(self, tmp_path):
        supervisor = make_supervisor(tmp_path)
        assert supervisor.start_evolution(max_generations=2)
        assert not supervisor.start_evolution()
        await supervisor.wait()
        await supervisor.shutdown()

        assert supervisor.current_generation == 2
        assert supervisor.pool.bound_count == 0
        assert all(g.fitness is not None for g in supervisor.evolution.genome_list)
        assert (tmp_path / "cars.pop.json").exists()
        assert (tmp_path / "cars.champ.json").exists()
        assert supervisor.last_error is None

    @pytest.mark.asyncio
    async def test_agents_pooled_across_generations(self, tmp_path):
        """The pool never grows beyond one car per genome."""
        supervisor = make_supervisor(tmp_path, population_size=3, trials=2)
        supervisor.start_evolution(max_generations=3)
        await supervisor.wait()
        await supervisor.shutdown()

        assert len(supervisor.pool) == 3
        assert supervisor.pool.acquire_count == supervisor.pool.release_count == 9

    @pytest.mark.asyncio
    async def test_stop_mid_generation(self, tmp_path):
        """Stopping releases every car and saves the population."""
        supervisor = make_supervisor(tmp_path)
        supervisor.start_evolution()
        for _ in range(5):
            await asyncio.sleep(0)
        bound_while_running = supervisor.pool.bound_count
        await supervisor.stop_evolution()
        status = supervisor.get_status()
        await supervisor.shutdown()

        assert bound_while_running == 4
        assert supervisor.pool.bound_count == 0
        assert not status["running"]
        assert status["run_state"] == "paused"
        assert (tmp_path / "cars.pop.json").exists()

    @pytest.mark.asyncio
    async def test_stop_before_first_step(self, tmp_path):
        """Stopping a run that has not started yet still pauses and saves."""
        supervisor = make_supervisor(tmp_path)
        supervisor.start_evolution()
        await supervisor.stop_evolution()
        status = supervisor.get_status()
        await supervisor.shutdown()

        assert not status["running"]
        assert status["run_state"] == "paused"
        assert supervisor.current_generation == 0
        assert supervisor.pool.bound_count == 0
        assert (tmp_path / "cars.pop.json").exists()

    @pytest.mark.asyncio
    async def test_restart_resumes_saved_population(self, tmp_path):
        supervisor = make_supervisor(tmp_path)
        supervisor.start_evolution()
        await asyncio.sleep(0)
        ids = [g.genome_id for g in supervisor.evolution.genome_list]
        await supervisor.stop_evolution()

        supervisor.start_evolution()
        resumed = [g.genome_id for g in supervisor.evolution.genome_list]
        await supervisor.shutdown()

        assert resumed == ids

    @pytest.mark.asyncio
    async def test_run_best_without_champion(self, tmp_path):
        supervisor = make_supervisor(tmp_path)
        shown = await supervisor.run_best()
        await supervisor.shutdown()

        assert shown is False
        assert supervisor.pool.bound_count == 0

    @pytest.mark.asyncio
    async def test_run_best_drives_one_car(self, tmp_path):
        supervisor = make_supervisor(tmp_path)
        supervisor.start_evolution(max_generations=1)
        await supervisor.wait()

        shown = await supervisor.run_best()
        bound = supervisor.pool.bound_count
        await supervisor.host.wait(0.5)
        fitness = supervisor.showcase_fitness()
        await supervisor.shutdown()

        assert shown is True
        assert bound == 1
        assert fitness is not None and fitness >= 0.0
        assert supervisor.pool.bound_count == 0

    def test_time_scale(self, tmp_path):
        supervisor = make_supervisor(tmp_path)
        supervisor.set_time_scale(4.0)

        assert supervisor.get_status()["time_scale"] == 4.0


class TestCli:
    """Tests for the neuro-arena command."""

    def test_parser_defaults(self):
        args = build_parser().parse_args([])

        assert args.experiment == "car_track"
        assert args.trials == 1
        assert args.trial_duration == 20.0
        assert args.stopping_fitness == 15.0
        assert not args.run_best

    @pytest.mark.asyncio
    async def test_short_run(self, tmp_path):
        args = build_parser().parse_args([
            "--generations", "1",
            "--population-size", "3",
            "--trial-duration", "0.1",
            "--data-dir", str(tmp_path),
        ])

        assert await run_async(args) == 0
        assert (tmp_path / "car_track.pop.json").exists()

    @pytest.mark.asyncio
    async def test_run_best_without_champion_fails(self, tmp_path):
        args = build_parser().parse_args(["--run-best", "--data-dir", str(tmp_path)])

        assert await run_async(args) == 1

    @pytest.mark.asyncio
    async def test_delete_saves(self, tmp_path):
        store = PopulationStore(PersistenceConfig(data_dir=tmp_path))
        saved = GenomeFactory(5, 2, hidden_count=6, seed=0).create_genome_list(5)
        store.save("car_track", ExperimentFileType.POPULATION, saved)
        args = build_parser().parse_args([
            "--generations", "1",
            "--population-size", "2",
            "--trial-duration", "0.1",
            "--data-dir", str(tmp_path),
            "--delete-saves",
        ])

        assert await run_async(args) == 0
        assert len(store.load("car_track", ExperimentFileType.POPULATION)) == 2
