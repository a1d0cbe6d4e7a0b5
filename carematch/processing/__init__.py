"""Processing module for state and date normalization."""

from carematch.processing.normalizer import Normalizer

__all__ = ["Normalizer"]
