"""
tracefuse - execution-trace reconciliation for HTTP test runs.

This package fuses the execution log of an HTTP-test-runner process, the
`.http` request file it executed and the JUnit-like XML report it wrote into
one ordered, deduplicated set of request outcome records.
"""

from tracefuse._version import __version__, __version_info__
from tracefuse.config import settings
from tracefuse.logger import logger

__all__ = [
    "settings",
    "logger",
    "__version__",
    "__version_info__",
]
