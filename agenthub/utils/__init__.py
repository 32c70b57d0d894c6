"""Utility modules for AgentHub."""

from .logger import get_logger, log_execution, setup_logging

__all__ = ["get_logger", "log_execution", "setup_logging"]
