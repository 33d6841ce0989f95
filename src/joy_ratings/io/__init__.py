"""I/O utilities for reading and writing experiment files."""

from . import readers
from . import writers

__all__ = ["readers", "writers"]
