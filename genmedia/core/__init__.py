"""
genmedia core components

Foundational infrastructure shared by the generation services:
- Immutable configuration
- Circuit breaker guarding the remote endpoint
"""

from .circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitState,
)
from .config import APIConfig, Config, DownloadConfig, ModelConfig, PollingConfig

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpen",
    "CircuitState",
    "APIConfig",
    "Config",
    "DownloadConfig",
    "ModelConfig",
    "PollingConfig",
]
