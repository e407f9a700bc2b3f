"""Autonomous evolution pipeline for chess outcome prediction."""

__version__ = "7.10.0"
