"""
Error taxonomy shared by all retrieval components.

Every error carries a stable machine-readable ``code``, a human-readable message and an
optional ``data`` dict with structured details (offending value, originating query, ...).
"""

import re
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError, EndpointConnectionError


class ErrorCodes:
    """Stable error codes exposed to callers."""
    VALIDATION_FAILED = 'VALIDATION_FAILED'
    INVALID_QUERY = 'INVALID_QUERY'
    INVALID_PARAMS = 'INVALID_PARAMS'
    INVALID_CONTEXT_LEVEL = 'INVALID_CONTEXT_LEVEL'
    INVALID_DATE_FILTER = 'INVALID_DATE_FILTER'
    INVALID_TRAVERSAL_OPTIONS = 'INVALID_TRAVERSAL_OPTIONS'

    DATABASE_UNAVAILABLE = 'DATABASE_UNAVAILABLE'
    DATABASE_OPERATION_FAILED = 'DATABASE_OPERATION_FAILED'
    DUPLICATE_ID = 'DUPLICATE_ID'
    CONSTRAINT_VIOLATION = 'CONSTRAINT_VIOLATION'
    QUERY_SYNTAX_ERROR = 'QUERY_SYNTAX_ERROR'

    SERVICE_UNAVAILABLE = 'SERVICE_UNAVAILABLE'
    SERVICE_ERROR = 'SERVICE_ERROR'
    EMBEDDING_UNAVAILABLE = 'EMBEDDING_UNAVAILABLE'

    MEMORY_NOT_FOUND = 'MEMORY_NOT_FOUND'
    INTERNAL_ERROR = 'INTERNAL_ERROR'


class GraphRecallError(Exception):
    """Base class for all retrieval errors."""

    default_code = ErrorCodes.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.data = data

    def with_data(self, **extra: Any) -> 'GraphRecallError':
        """Merge extra structured details into ``data`` and return self."""
        self.data = {**(self.data or {}), **extra}
        return self

    def to_dict(self) -> Dict[str, Any]:
        result = {'code': self.code, 'message': self.message}
        if self.data is not None:
            result['data'] = self.data
        return result


class ValidationError(GraphRecallError, ValueError):
    """Bad caller input. Raised before any store or provider call."""
    default_code = ErrorCodes.VALIDATION_FAILED


class StoreError(GraphRecallError):
    """Graph store failure (connectivity, constraint, malformed request)."""
    default_code = ErrorCodes.DATABASE_OPERATION_FAILED


class ServiceError(GraphRecallError):
    """External service (embedding provider) unavailable or failed."""
    default_code = ErrorCodes.SERVICE_UNAVAILABLE


class NotFoundError(GraphRecallError):
    """Referenced entity does not exist."""
    default_code = ErrorCodes.MEMORY_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: str, code: Optional[str] = None):
        super().__init__(f'{resource_type} not found: {resource_id}',
                         code,
                         data={
                             'resourceType': resource_type,
                             'resourceId': resource_id
                         })


class OperationError(GraphRecallError):
    """Uncategorized failure; last-resort wrapper."""
    default_code = ErrorCodes.INTERNAL_ERROR


CONNECTIVITY_MARKERS = ('connection refused', 'could not connect', 'endpoint connection', 'timed out', 'timeout',
                        'cannot write to closing transport', 'serviceunavailable', 'service unavailable', 'throttl')
CONNECTIVITY_ERROR_CODES = {'ServiceUnavailableException', 'ThrottlingException', 'TimeLimitExceededException',
                            'ReadOnlyViolationException', 'ClientTimeoutException'}
QUERY_ERROR_CODES = {'MalformedQueryException', 'BadRequestException', 'InvalidParameterException'}
CONSTRAINT_ERROR_CODES = {'ConstraintViolationException', 'ConcurrentModificationException'}

DUPLICATE_ID_PATTERN = re.compile(r"property `id` = '([^']+)'|already exists[^']*'([^']+)'", re.IGNORECASE)


def _client_error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code', '') or ''
    return ''


def detect_store_error(error: Exception) -> Optional[StoreError]:
    """
    Classify a native graph store error by inspecting its code and message.

    Args:
        error: Exception raised by the store client

    Returns:
        Typed StoreError, or None if the error does not match a known store failure
    """
    if isinstance(error, StoreError):
        return error

    message = str(error)
    lowered = message.lower()
    error_code = _client_error_code(error)

    if 'constraint' in lowered or 'already exists' in lowered or error_code in CONSTRAINT_ERROR_CODES:
        match = DUPLICATE_ID_PATTERN.search(message)
        if match:
            duplicate_id = match.group(1) or match.group(2)
            return StoreError(f'Duplicate ID constraint violation: {duplicate_id}',
                              ErrorCodes.DUPLICATE_ID,
                              data={'duplicateId': duplicate_id})
        return StoreError(f'Constraint violation: {message}', ErrorCodes.CONSTRAINT_VIOLATION, data={'originalError': message})

    if isinstance(error, (EndpointConnectionError, ConnectionError)) or error_code in CONNECTIVITY_ERROR_CODES or any(
            marker in lowered for marker in CONNECTIVITY_MARKERS):
        return StoreError('Database service unavailable', ErrorCodes.DATABASE_UNAVAILABLE, data={'originalError': message})

    if error_code in QUERY_ERROR_CODES or 'malformed' in lowered or 'syntax error' in lowered:
        return StoreError(f'Graph query rejected: {message}', ErrorCodes.QUERY_SYNTAX_ERROR, data={'originalError': message})

    return None


def to_recall_error(error: Exception) -> GraphRecallError:
    """
    Convert any exception into a GraphRecallError.

    Used as a last resort when the error type cannot be determined at the raise site.
    """
    if isinstance(error, GraphRecallError):
        return error

    store_error = detect_store_error(error)
    if store_error is not None:
        return store_error

    return OperationError(str(error) or type(error).__name__,
                          ErrorCodes.INTERNAL_ERROR,
                          data={'originalError': type(error).__name__})
