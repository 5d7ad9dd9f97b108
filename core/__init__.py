"""
Core infrastructure for CodeShelf

- Engine configuration (YAML-backed, frozen dataclasses)
- Error hierarchy
- Structured logging
- Content item / corpus models
"""

from .errors import CodeShelfError, ValidationError, ConfigurationError, OrganizationError
from .config import EngineConfig, get_config, load_config, reset_config
from .models import ContentItem, CorpusSnapshot

__all__ = [
    'CodeShelfError',
    'ValidationError',
    'ConfigurationError',
    'OrganizationError',
    'EngineConfig',
    'get_config',
    'load_config',
    'reset_config',
    'ContentItem',
    'CorpusSnapshot',
]
