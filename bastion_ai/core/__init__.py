"""
Core utilities and configuration for Bastion-AI.

This package provides logging configuration and Logfire monitoring helpers
shared by the approval engine and the HTTP server.
"""

from bastion_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
