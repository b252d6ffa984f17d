"""Dual-track breakout paper/live trading engine."""

__version__ = "1.0.0"
