"""
OIF solver.

Drives cross-chain intents through fill and finalization.
"""

__version__ = "0.1.0"
