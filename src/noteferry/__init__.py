"""
NoteFerry - extract web content into note-taking apps.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import NoteFerryContainer
from .extractor.manager import ExtractionOrchestrator

__all__ = ["__version__", "Config", "ExtractionOrchestrator", "NoteFerryContainer"]
