"""
CodeShelf Error Handling

Provides:
- Custom exception classes for the organization engine
- Structured error payloads for callers that serialize failures

The scoring engines never raise on odd input text; these exceptions cover
boundary problems only (bad corpus records, broken configuration).

Usage:
    from core.errors import ValidationError

    if not record.get('id'):
        raise ValidationError("Content item has no id", record=record)
"""

import logging

logger = logging.getLogger('codeshelf.errors')


# =============================================================================
# Custom Exceptions
# =============================================================================

class CodeShelfError(Exception):
    """Base exception for CodeShelf errors."""

    error_type = 'internal_error'
    message = 'An unexpected error occurred'

    def __init__(self, message=None, **kwargs):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = kwargs

    def to_dict(self):
        return {
            'error': self.error_type,
            'message': self.message,
            'details': self.details
        }


class ValidationError(CodeShelfError):
    """Invalid input data."""
    error_type = 'validation_error'
    message = 'Invalid input'


class ConfigurationError(CodeShelfError):
    """Configuration issue."""
    error_type = 'configuration_error'
    message = 'Engine configuration error'


class OrganizationError(CodeShelfError):
    """Processing a single item or group failed."""
    error_type = 'organization_error'
    message = 'Organization step failed'


# =============================================================================
# Helpers
# =============================================================================

def describe_failure(error: Exception, **context) -> dict:
    """
    Build a serializable failure record for batch results.

    Args:
        error: The exception that stopped one unit of work
        **context: Identifiers of the failed unit (item id, group index)

    Returns:
        Dict with error type, message and context
    """
    if isinstance(error, CodeShelfError):
        payload = error.to_dict()
        payload['details'] = {**error.details, **context}
    else:
        payload = {
            'error': 'internal_error',
            'message': str(error) or error.__class__.__name__,
            'details': context,
        }

    logger.warning(
        f"{payload['error']}: {payload['message']}",
        extra={'error_type': payload['error'], 'details': payload['details']}
    )
    return payload
