"""Invocation of the wrapped test runner."""

from .orchestrator import RunOrchestrator

__all__ = ["RunOrchestrator"]
