"""
Embedding Manager for lifecycle-managed query embeddings.
"""

import math
import threading
from concurrent.futures import Future
from numbers import Real
from typing import Any, Callable, List, Optional, Sequence

from ..utils.bedrock_embed import BedrockEmbed
from ..utils.config import BedrockEmbedConfig
from ..utils.errors import ErrorCodes, GraphRecallError, ServiceError, ValidationError
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def cosine_similarity(a: Optional[Sequence[Any]], b: Optional[Sequence[Any]]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 instead of raising when either vector is missing, the lengths differ or
    either magnitude is zero. Positions holding a non-numeric component are skipped.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    magnitude_a = 0.0
    magnitude_b = 0.0
    for x, y in zip(a, b):
        if not _is_number(x) or not _is_number(y):
            continue
        dot += x * y
        magnitude_a += x * x
        magnitude_b += y * y

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return dot / (math.sqrt(magnitude_a) * math.sqrt(magnitude_b))


class EmbeddingManager:
    """Owns the embedding client: lazy single-flight load, idle release and shutdown.

    Concurrent callers arriving while the client is loading wait on the same load. A failed
    load is forgotten so the next call retries it.
    """

    def __init__(self, config: BedrockEmbedConfig, factory: Optional[Callable[[BedrockEmbedConfig], Any]] = None):
        """
        Initialize the embedding manager.

        Args:
            config: BedrockEmbedConfig instance
            factory: Callable building the embedding client (defaults to BedrockEmbed)
        """
        self.config = config
        self._factory = factory or BedrockEmbed
        self._lock = threading.Lock()
        self._model = None
        self._loading: Optional[Future] = None
        self._idle_timer: Optional[threading.Timer] = None
        self._idle_generation = 0
        self._shutdown_generation = 0
        self.load_count = 0

        if config.preload:
            try:
                self.preload()
            except GraphRecallError as e:
                logger.warning(f'Embedding model preload failed, will retry on first use: {e}')

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def dimensions(self) -> int:
        return self.config.dimension

    def preload(self) -> None:
        """Load the embedding client ahead of the first request."""
        self._ensure_model()

    def calculate_embedding(self, text: str) -> List[float]:
        """
        Compute the embedding of a text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector

        Raises:
            ValidationError: If text is empty or whitespace
            ServiceError: If the provider is unavailable or fails
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError('Cannot calculate embedding for empty text', ErrorCodes.INVALID_QUERY)

        model = self._ensure_model()
        try:
            vector = model.embed_query(text)
        except GraphRecallError:
            raise
        except Exception as e:
            logger.error(f'Error calculating embedding: {e}')
            raise ServiceError(f'Embedding computation failed: {e}', ErrorCodes.EMBEDDING_UNAVAILABLE) from e

        self._touch()
        return vector

    def _ensure_model(self):
        with self._lock:
            if self._model is not None:
                return self._model
            loading = self._loading
            owner = loading is None
            if owner:
                loading = self._loading = Future()
                generation = self._shutdown_generation

        if not owner:
            return loading.result()

        try:
            model = self._factory(self.config)
        except Exception as e:
            with self._lock:
                self._loading = None
            logger.error(f'Failed to load embedding model: {e}')
            error = e
            if not isinstance(e, ServiceError):
                error = ServiceError(f'Embedding model initialization failed: {e}', ErrorCodes.EMBEDDING_UNAVAILABLE)
                error.__cause__ = e
            loading.set_exception(error)
            raise error

        with self._lock:
            # a shutdown during the load leaves the manager empty
            if generation == self._shutdown_generation:
                self._model = model
                self.load_count += 1
            self._loading = None
        loading.set_result(model)
        logger.info(f'Embedding model loaded: {self.config.model_id}')
        return model

    def _touch(self) -> None:
        """Restart the idle timer after a successful embedding."""
        with self._lock:
            if self.config.idle_timeout <= 0:
                return
            if self._idle_timer is not None:
                self._idle_timer.cancel()
            self._idle_generation += 1
            self._idle_timer = threading.Timer(self.config.idle_timeout, self._release_if_idle, args=(self._idle_generation,))
            self._idle_timer.daemon = True
            self._idle_timer.start()

    def _release_if_idle(self, generation: int) -> None:
        # a newer timer means the client was used after this one was armed
        with self._lock:
            if self._model is None or generation != self._idle_generation:
                return
            self._model = None
            self._idle_timer = None
        logger.info('Embedding model released after idle timeout')

    def shutdown(self) -> None:
        """Cancel the idle timer and drop the loaded client."""
        with self._lock:
            if self._idle_timer is not None:
                self._idle_timer.cancel()
                self._idle_timer = None
            self._idle_generation += 1
            self._shutdown_generation += 1
            self._model = None
        logger.info('Embedding manager shut down')
