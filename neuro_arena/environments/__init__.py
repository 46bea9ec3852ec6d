"""
Environments for evolved controllers.

- track: Cars driving laps around a ring track
"""

from .track import Track, TrackConfig, CarAgent, create_car_factory

__all__ = ["Track", "TrackConfig", "CarAgent", "create_car_factory"]
