"""
neuro_arena/services/cli.py

Command-line entry point: `neuro-arena`.

Runs the car track experiment until the generation limit, the stopping
fitness, or a shutdown signal. Every exit path saves the population and
the champion.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from neuro_arena.core.host import HostConfig
from neuro_arena.environments.track import TrackConfig, Track, create_car_factory

from .experiment import Experiment, ExperimentConfig
from .persistence import PersistenceConfig, PopulationStore
from .supervisor import EvolutionSupervisor, SupervisorConfig

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generational neuroevolution on a race track")
    parser.add_argument("--experiment", default="car_track")
    parser.add_argument("--generations", type=int, default=None,
                        help="Stop after this many generations (default: run until stopped)")
    parser.add_argument("--population-size", type=int, default=50)
    parser.add_argument("--trials", type=int, default=1)
    parser.add_argument("--trial-duration", type=float, default=20.0)
    parser.add_argument("--stopping-fitness", type=float, default=15.0)
    parser.add_argument("--time-scale", type=float, default=1.0)
    parser.add_argument("--realtime", action="store_true",
                        help="Pace the simulation against the wall clock")
    parser.add_argument("--data-dir", default=None,
                        help="Save file directory (default: $NEURO_ARENA_DATA_DIR or ~/.neuro_arena)")
    parser.add_argument("--run-best", action="store_true",
                        help="Drive one car with the saved champion instead of evolving")
    parser.add_argument("--showcase-duration", type=float, default=None,
                        help="Simulated seconds to run the champion (default: until stopped)")
    parser.add_argument("--delete-saves", action="store_true",
                        help="Delete the experiment's save files before starting")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def create_supervisor(args: argparse.Namespace) -> EvolutionSupervisor:
    """Wire an experiment and a supervisor from parsed arguments."""
    if args.data_dir:
        persistence_config = PersistenceConfig(data_dir=Path(args.data_dir))
    else:
        persistence_config = PersistenceConfig.from_env()

    experiment = Experiment(
        ExperimentConfig(
            name=args.experiment,
            population_size=args.population_size,
            seed=args.seed,
        ),
        store=PopulationStore(persistence_config),
    )
    if args.delete_saves:
        experiment.delete_save_files()

    supervisor_config = SupervisorConfig(
        trials=args.trials,
        trial_duration=args.trial_duration,
        stopping_fitness=args.stopping_fitness,
        host=HostConfig(time_scale=args.time_scale, realtime=args.realtime),
    )
    track = Track(TrackConfig())
    return EvolutionSupervisor(experiment, create_car_factory(track), supervisor_config)


async def run_async(args: argparse.Namespace) -> int:
    supervisor = create_supervisor(args)

    # Handle signals for graceful shutdown
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(shutdown.set))

    if args.run_best:
        if not await supervisor.run_best():
            logger.error("No champion available")
            await supervisor.shutdown()
            return 1
        if args.showcase_duration is not None:
            work = loop.create_task(supervisor.host.wait(args.showcase_duration))
        else:
            work = loop.create_task(shutdown.wait())
    else:
        supervisor.start_evolution(args.generations)
        work = loop.create_task(supervisor.wait())

    stop = loop.create_task(shutdown.wait())
    await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
    if stop.done():
        logger.info("Received shutdown signal")

    if args.run_best:
        logger.info(f"Champion fitness: {supervisor.showcase_fitness()}")

    await supervisor.shutdown()
    for task in (work, stop):
        task.cancel()
    await asyncio.gather(work, stop, return_exceptions=True)

    logger.info(f"Final status: {supervisor.get_status()}")
    return 1 if supervisor.last_error is not None else 0


def run_supervisor(argv: Optional[List[str]] = None) -> None:
    """Run the supervisor as a standalone service."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(asyncio.run(run_async(args)))


if __name__ == "__main__":
    run_supervisor()
