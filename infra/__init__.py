"""
Infrastructure module exports.

Configuration and bootstrap for the binding store and sender.
"""

from .config import InfraConfig, get_config, BindingBackendType
from .bootstrap import InfraBootstrap, bootstrap_infrastructure

__all__ = [
    "InfraConfig",
    "get_config",
    "BindingBackendType",
    "InfraBootstrap",
    "bootstrap_infrastructure",
]
