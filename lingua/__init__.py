"""
Lingua: adaptive learning progression engine.
"""

__version__ = "0.1.0"
