"""
Core utilities and configuration for AgentLink-AI.

This package provides logging configuration, settings, the HTTP transport
provider and concurrency primitives shared by the other subpackages.
"""

from agentlink_ai.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
