"""Indicator engine module."""

from .engine import IIndicatorEngine, IndicatorEngine

__all__ = ["IIndicatorEngine", "IndicatorEngine"]
