"""
核心模块
"""

from .id_resolver import IdentifierResolver
from .config_loader import load_config, ConfigStore
from .cancellation import CancellationToken, OperationCancelled
from .error_handler import ErrorHandler, ErrorAggregator, ErrorCategory, StructuredError

__all__ = [
    'IdentifierResolver',
    'load_config',
    'ConfigStore',
    'CancellationToken',
    'OperationCancelled',
    'ErrorHandler',
    'ErrorAggregator',
    'ErrorCategory',
    'StructuredError',
]
