"""Simulated sensor modules for Irrigation Station.

Each sensor class inherits from BaseSensor and implements:
    _simulate(envelope, elapsed, watering)  - return the next value

The base class (sensors.base.BaseSensor) provides:
    read(...)         - unified read with error handling
    value             - latest raw value
    reading()         - latest value as a rounded SensorReading

SignalSynthesizer (sensors.synthesizer) owns one sensor per metric and
advances all of them once per control tick.
"""

from sensors.base import BaseSensor, SensorReading
from sensors.environment import WaveformSensor
from sensors.soil_moisture import SoilMoistureSensor
from sensors.synthesizer import SignalSynthesizer, SimulationClock
from sensors.waveform import WaveformGenerator

__all__ = [
    "BaseSensor",
    "SensorReading",
    "WaveformSensor",
    "SoilMoistureSensor",
    "SignalSynthesizer",
    "SimulationClock",
    "WaveformGenerator",
]
