"""
Amazon Neptune graph database client issuing parameterized openCypher requests through boto3.
"""

import json
import threading
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, Iterator, List, Optional

from boto3 import Session

from .config import NeptuneConfig
from .errors import ErrorCodes, StoreError, detect_store_error
from .logging_config import get_logger

logger = get_logger(__name__)


class NeptuneError(StoreError):
    """Custom exception for Neptune errors."""
    pass


def _classify(func_name: str, error: Exception) -> StoreError:
    classified = detect_store_error(error)
    if classified is not None:
        return classified
    return NeptuneError(f'Failed to {func_name}: {error}', ErrorCodes.DATABASE_OPERATION_FAILED,
                        data={'originalError': str(error)})


def retry_on_connection_error(func):
    """Decorator to retry Neptune operations once after a connectivity failure."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except Exception as e:
            classified = _classify(func.__name__, e)
            if classified.code != ErrorCodes.DATABASE_UNAVAILABLE:
                logger.error(f'Error in {func.__name__}: {e}')
                raise classified from e

            logger.warning(f'Connection error detected: {e}. Reconnecting...')
            self.close()
            self._connect()
            try:
                return func(self, *args, **kwargs)
            except Exception as retry_e:
                logger.error(f'Error in {func.__name__}: {retry_e}')
                raise _classify(func.__name__, retry_e) from retry_e

    return wrapper


class GraphSession:
    """Request-scoped handle on the graph store.

    Obtained from ``NeptuneClient.session()``; unusable once the owning context exits.
    """

    def __init__(self, client: 'NeptuneClient'):
        self._client = client
        self.closed = False
        self.request_count = 0

    def run(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute one openCypher request.

        Args:
            query: openCypher text with ``$name`` placeholders
            parameters: Values bound to the placeholders

        Returns:
            Result rows as dicts keyed by the RETURN aliases

        Raises:
            StoreError: If the session is closed or the store rejects the request
        """
        if self.closed:
            raise StoreError('Graph session already released', ErrorCodes.DATABASE_OPERATION_FAILED)
        self.request_count += 1
        return self._client.execute(query, parameters)

    def close(self) -> None:
        self.closed = True


class NeptuneClient:
    """Amazon Neptune client using the boto3 neptunedata API with a bounded session pool."""

    def __init__(self, config: NeptuneConfig, client: Any = None):
        """
        Initialize Neptune client.

        Args:
            config: NeptuneConfig instance with connection parameters
            client: Pre-built neptunedata client (optional, created from config if None)
        """
        self.config = config
        self.client = client
        self._pool = threading.BoundedSemaphore(config.max_sessions)

        if self.client is None:
            self._connect()

        logger.info(f'Connected to Neptune at {config.endpoint}:{config.port}')

    def _connect(self):
        """Create the neptunedata client."""
        scheme = 'https' if self.config.use_ssl else 'http'
        endpoint_url = f'{scheme}://{self.config.endpoint}:{self.config.port}'

        session = Session()
        region = session.region_name or self.config.region or 'us-east-1'
        self.client = session.client('neptunedata', region_name=region, endpoint_url=endpoint_url)

    def close(self):
        """Close the Neptune client."""
        if self.client is not None and hasattr(self.client, 'close'):
            self.client.close()

    @retry_on_connection_error
    def execute(self, query: str, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute an openCypher request.

        Args:
            query: openCypher text
            parameters: Bound parameters, serialized to JSON for the API

        Returns:
            Result rows
        """
        request = {'openCypherQuery': query}
        if parameters:
            request['parameters'] = json.dumps(parameters)

        response = self.client.execute_open_cypher_query(**request)
        rows = response.get('results', [])
        logger.debug(f'openCypher request returned {len(rows)} rows')
        return rows

    @contextmanager
    def session(self) -> Iterator[GraphSession]:
        """
        Acquire a pooled session for one request.

        The session is released on every exit path, including errors raised by the caller.

        Raises:
            StoreError: If no session becomes available within the configured timeout
        """
        if not self._pool.acquire(timeout=self.config.acquire_timeout):
            raise StoreError('Graph session pool exhausted',
                             ErrorCodes.DATABASE_UNAVAILABLE,
                             data={'maxSessions': self.config.max_sessions})

        graph_session = GraphSession(self)
        try:
            yield graph_session
        finally:
            graph_session.close()
            self._pool.release()

    def health_check(self) -> bool:
        """
        Perform a health check on the Neptune service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            self.execute('MATCH (m:Memory) RETURN count(m) AS count')
            return True
        except StoreError as e:
            logger.error(f'Neptune health check failed: {e}')
            return False
