"""Divan API - online psychoanalysis sessions"""

__version__ = "1.0.0"
