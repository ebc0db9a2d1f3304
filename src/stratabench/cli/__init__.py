"""
StrataBench CLI
===============
Command-line interface for running benchmark categories and comparing
result documents.

Usage:
    stratabench run latency
    stratabench compare baseline.json candidate.json
"""

from .main import cli, main

__all__ = ["cli", "main"]
