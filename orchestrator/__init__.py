"""
Orchestrator Package - Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
Wires the valuation core into runnable flows.

- core: logging setup
- pipeline: recording -> calculation -> commit -> result
- cli: the biotoken command

The orchestrator has no valuation logic of its own.

============================================================
"""

from .core import setup_logging
from .pipeline import TokenizationOutcome, TokenizationPipeline, create_pipeline
from .cli import create_parser, main

__all__ = [
    "setup_logging",
    "TokenizationOutcome",
    "TokenizationPipeline",
    "create_pipeline",
    "create_parser",
    "main",
]
