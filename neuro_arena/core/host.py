"""
core/host.py

The host tick loop: a single-threaded, cooperative clock.

There is no parallelism here. Every bound agent is stepped once per tick
by the host, and anything that needs to wait for simulated time (a trial
window) suspends on the host and is resumed by a later tick. Nothing
runs until the host ticks.

Time is simulated: one tick advances the clock by `fixed_delta`
seconds. In realtime mode each tick is paced against the wall clock,
scaled by the global `time_scale`, so a time scale of 4 finishes a
20 second trial in 5 wall seconds.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .agent import Agent

logger = logging.getLogger(__name__)


@dataclass
class HostConfig:
    """Configuration for the host tick loop."""
    fixed_delta: float = 0.02   # Simulated seconds per tick
    time_scale: float = 1.0     # Global time multiplier (realtime pacing only)
    realtime: bool = False      # Pace ticks against the wall clock

    def __post_init__(self):
        if self.fixed_delta <= 0:
            raise ValueError(f"fixed_delta must be positive, got {self.fixed_delta}")
        if self.time_scale <= 0:
            raise ValueError(f"time_scale must be positive, got {self.time_scale}")


class SimulationHost:
    """
    Cooperative scheduler driven by a fixed-step tick.

    Per tick:
    1. Advance the simulated clock
    2. Step every attached active agent once
    3. Resume waiters whose deadline has been reached

    Waiters are resumed only after the agents have been stepped, so a
    waiter woken at tick N has seen the agents run for all N ticks.
    """

    def __init__(self, config: Optional[HostConfig] = None):
        self.config = config or HostConfig()
        self.ticks = 0

        self._agents: List[Agent] = []
        self._waiters: List[Tuple[int, int, asyncio.Future]] = []
        self._seq = itertools.count()
        self._running = False

    # ==================== Clock ====================

    @property
    def time(self) -> float:
        """Simulated seconds elapsed."""
        return self.ticks * self.config.fixed_delta

    @property
    def time_scale(self) -> float:
        return self.config.time_scale

    @time_scale.setter
    def time_scale(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"time_scale must be positive, got {value}")
        self.config.time_scale = value
        logger.info(f"Time scale set to {value}")

    @property
    def tick_interval(self) -> float:
        """Wall seconds per tick in realtime mode."""
        return self.config.fixed_delta / self.config.time_scale

    def ticks_for(self, duration: float) -> int:
        """Whole ticks needed to cover a simulated duration."""
        return max(1, math.ceil(duration / self.config.fixed_delta - 1e-9))

    # ==================== Agents ====================

    def attach(self, agent: Agent) -> None:
        if agent not in self._agents:
            self._agents.append(agent)

    def detach(self, agent: Agent) -> None:
        if agent in self._agents:
            self._agents.remove(agent)

    @property
    def agents(self) -> List[Agent]:
        return list(self._agents)

    # ==================== Scheduling ====================

    async def wait(self, duration: float) -> None:
        """
        Suspend the caller for `duration` simulated seconds.

        The caller is resumed by the tick that reaches the deadline.
        Requires `run()` (or manual `tick()` calls) to make progress.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        deadline = self.ticks + self.ticks_for(duration)
        heapq.heappush(self._waiters, (deadline, next(self._seq), future))
        await future

    def tick(self) -> None:
        """Advance the simulation by one fixed step."""
        self.ticks += 1
        dt = self.config.fixed_delta

        for agent in list(self._agents):
            if not agent.is_active:
                continue
            try:
                agent.step(dt)
            except Exception as e:
                logger.warning(f"Agent {agent.id} failed at tick {self.ticks}: {e}")

        while self._waiters and self._waiters[0][0] <= self.ticks:
            _, _, future = heapq.heappop(self._waiters)
            if not future.done():
                future.set_result(None)

    async def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Tick until stopped (or for max_ticks ticks).

        Yields to the event loop after every tick so waiting coroutines
        resume before the next step.
        """
        self._running = True
        start = self.ticks
        logger.info(
            f"Host running (dt={self.config.fixed_delta}, "
            f"time_scale={self.config.time_scale}, "
            f"realtime={self.config.realtime})"
        )

        try:
            while self._running:
                if max_ticks is not None and self.ticks - start >= max_ticks:
                    break
                self.tick()
                if self.config.realtime:
                    await asyncio.sleep(self.tick_interval)
                else:
                    await asyncio.sleep(0)
        finally:
            self._running = False
            logger.info(f"Host stopped at tick {self.ticks} (t={self.time:.2f}s)")

    def stop(self) -> None:
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending_waiters(self) -> int:
        return sum(1 for _, _, f in self._waiters if not f.done())

    def __repr__(self) -> str:
        return (
            f"SimulationHost(ticks={self.ticks}, "
            f"time={self.time:.2f}, "
            f"agents={len(self._agents)})"
        )
