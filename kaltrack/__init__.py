"""Kalman-filter track fitting: layers, materials, frames, transport and helix fits."""

__version__ = "0.1.0"

__all__ = [
    "attributes",
    "frame",
    "measlayer",
    "hit",
    "filtercond",
    "detector",
    "transport",
    "track",
]