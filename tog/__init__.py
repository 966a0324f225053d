"""TOG — a small, optionally typed scripting language."""

__version__ = "0.3.0"

from tog.errors import TogError
from tog.interpreter import evaluate, run_source
from tog.parser import parse

__all__ = ["__version__", "TogError", "evaluate", "parse", "run_source"]
