"""
environments/track.py

A ring-shaped race track and the cars that learn to drive it.

The track is the annulus between two circles, cut into equal road
pieces counted counter-clockwise from the start line. Piece 0 holds the
start/goal line. A car senses the walls with five rays, steers and
accelerates with its two outputs, and earns fitness for every piece it
passes in order and every lap it completes.

The world is shared by all cars but cars never collide with each other,
so any number of them can be bound at once.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple
import math
import numpy as np

from neuro_arena.core.agent import Agent


@dataclass
class TrackConfig:
    """Configuration for the ring track and its cars."""
    inner_radius: float = 10.0
    outer_radius: float = 20.0
    pieces: int = 18              # Road pieces per lap, piece 0 is the goal
    sensor_range: float = 10.0
    car_radius: float = 0.5
    speed: float = 5.0            # Units per second at full gas
    turn_speed: float = 180.0     # Degrees per second at full steer and gas
    wall_hit_penalty: float = 0.2

    def __post_init__(self):
        if not 0 < self.inner_radius < self.outer_radius:
            raise ValueError(
                f"radii must satisfy 0 < inner < outer, got "
                f"{self.inner_radius}, {self.outer_radius}"
            )
        if self.pieces < 4:
            raise ValueError(f"a track needs at least 4 pieces, got {self.pieces}")


# Sensor directions relative to the heading (radians, positive = left)
SENSOR_ANGLES = (
    0.0,                    # front
    math.atan2(0.5, 1.0),   # left front
    math.pi / 2,            # left
    -math.atan2(0.5, 1.0),  # right front
    -math.pi / 2,           # right
)


class Track:
    """Geometry of the ring track."""

    def __init__(self, config: Optional[TrackConfig] = None):
        self.config = config or TrackConfig()

    @property
    def piece_angle(self) -> float:
        return 2 * math.pi / self.config.pieces

    @property
    def center_radius(self) -> float:
        return (self.config.inner_radius + self.config.outer_radius) / 2

    def start_pose(self) -> Tuple[np.ndarray, float]:
        """Position in the middle of piece 0, heading counter-clockwise."""
        angle = self.piece_angle / 2
        r = self.center_radius
        position = np.array([r * math.cos(angle), r * math.sin(angle)])
        return position, angle + math.pi / 2

    def piece_at(self, position: np.ndarray) -> int:
        angle = math.atan2(position[1], position[0]) % (2 * math.pi)
        return int(angle / self.piece_angle) % self.config.pieces

    def ray_distance(self, origin: np.ndarray, heading: float) -> float:
        """Distance from `origin` along `heading` to the nearest wall (inf if none)."""
        direction = np.array([math.cos(heading), math.sin(heading)])
        b = float(origin @ direction)
        c0 = float(origin @ origin)

        distance = math.inf
        for radius in (self.config.inner_radius, self.config.outer_radius):
            disc = b * b - (c0 - radius * radius)
            if disc < 0:
                continue
            root = math.sqrt(disc)
            for t in (-b - root, -b + root):
                if t > 1e-9:
                    distance = min(distance, t)
                    break
        return distance

    def clamp_to_road(self, position: np.ndarray) -> Tuple[np.ndarray, bool]:
        """
        Push a position back inside the walls.

        Returns the corrected position and whether a wall was touched.
        """
        margin = self.config.car_radius
        r_min = self.config.inner_radius + margin
        r_max = self.config.outer_radius - margin

        r = float(np.linalg.norm(position))
        if r_min <= r <= r_max:
            return position, False
        if r == 0.0:
            return np.array([r_min, 0.0]), True
        return position * (np.clip(r, r_min, r_max) / r), True


class CarAgent(Agent):
    """
    A car driven by a two-output controller.

    Inputs (5): wall proximity, front / left front / left / right front /
    right, each 1 - distance / range, or 0 when no wall is in range.
    Outputs (2): steer and gas, both rescaled from [0, 1] to [-1, 1].

    Progress rules:
    - entering the next piece in order advances the current piece
    - entering piece 0 while moving forward closes the piece count
    - crossing the goal line after piece 2 while moving forward starts a
      new lap
    - any out-of-order piece marks the car as moving backwards
    """

    def __init__(self, agent_id: str, track: Optional[Track] = None):
        super().__init__(agent_id)
        self.track = track or Track()
        self._reset_episode()

    def _reset_episode(self) -> None:
        self.position, self.heading = self.track.start_pose()
        self.lap = 1
        self.current_piece = 0
        self.last_piece = 0
        self.wall_hits = 0
        self._moving_forward = True
        self._touching_wall = False
        self._piece_under_car = self.track.piece_at(self.position)

    # ==================== Agent interface ====================

    def update_inputs(self, input_signals: np.ndarray) -> None:
        sensor_range = self.track.config.sensor_range
        for i, offset in enumerate(SENSOR_ANGLES):
            if i >= len(input_signals):
                break
            distance = self.track.ray_distance(self.position, self.heading + offset)
            input_signals[i] = 1.0 - distance / sensor_range if distance <= sensor_range else 0.0

    def apply_outputs(self, output_signals: np.ndarray, dt: float) -> None:
        steer = float(output_signals[0]) * 2 - 1
        gas = float(output_signals[1]) * 2 - 1

        move = gas * self.track.config.speed * dt
        # Steering scales with gas, so it reverses when driving backwards
        turn = math.radians(steer * self.track.config.turn_speed * dt * gas)

        self.heading += turn
        moved = self.position + move * np.array([math.cos(self.heading), math.sin(self.heading)])
        self.position, touching = self.track.clamp_to_road(moved)

        if touching and not self._touching_wall:
            self.wall_hits += 1
        self._touching_wall = touching

        piece = self.track.piece_at(self.position)
        if piece != self._piece_under_car:
            self._piece_under_car = piece
            self._enter_piece(piece)

    def get_fitness(self) -> float:
        if self.lap == 1 and self.current_piece == 0:
            return 0.0

        piece = self.current_piece
        if piece == 0:
            piece = self.track.config.pieces - 1

        fitness = self.lap * piece - self.wall_hits * self.track.config.wall_hit_penalty
        return max(fitness, 0.0)

    def handle_activation(self) -> None:
        self._reset_episode()
        self.visible = True

    def handle_deactivation(self) -> None:
        self._reset_episode()
        self.visible = False

    # ==================== Progress ====================

    def _enter_piece(self, piece: int) -> None:
        in_order = piece == self.current_piece + 1 or (self._moving_forward and piece == 0)
        if piece != self.last_piece and in_order:
            self.last_piece = self.current_piece
            self.current_piece = piece
            self._moving_forward = True
        else:
            self._moving_forward = False

        if piece == 0:
            self.current_piece = 0
            self._cross_goal_line()

    def _cross_goal_line(self) -> None:
        if self.last_piece > 2 and self._moving_forward:
            self.lap += 1


def create_car_factory(track: Optional[Track] = None):
    """Agent factory for an AgentPool: every car shares one track."""
    track = track or Track()

    def factory(agent_id: str) -> CarAgent:
        return CarAgent(agent_id, track)

    return factory
