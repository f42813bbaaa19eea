"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .config import AppConfig, config as app_config
from .logging_config import get_logger
from .neptune_client import NeptuneClient

logger = get_logger(__name__)


def check_health(neptune_client: Optional[NeptuneClient] = None, embedding_manager: Any = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    health_status = get_health_status(neptune_client, embedding_manager)
    all_healthy = all(status.get('healthy', False) for status in health_status.values())

    if all_healthy:
        logger.info('All system components are healthy')
    else:
        logger.warning('Some system components are unhealthy')

    return all_healthy


def get_health_status(neptune_client: Optional[NeptuneClient] = None,
                      embedding_manager: Any = None,
                      config: Optional[AppConfig] = None) -> Dict[str, Any]:
    """Get detailed health status of the graph store and the embedding provider.

    Args:
        neptune_client: Client to probe (optional, built from config if None)
        embedding_manager: EmbeddingManager to probe (optional, skipped if None)
        config: AppConfig (optional, uses global config if None)

    Returns:
        Dictionary with health status of each component
    """
    config = config or app_config
    health_status = {}

    # Check Neptune
    try:
        neptune = neptune_client or NeptuneClient(config.neptune)
        health_status['neptune'] = {
            'healthy': neptune.health_check(),
            'service': 'Amazon Neptune',
            'endpoint': config.neptune.endpoint
        }
    except Exception as e:
        logger.error(f'Neptune health probe failed: {e}')
        health_status['neptune'] = {'healthy': False, 'service': 'Amazon Neptune', 'error': str(e)}

    # Check Bedrock Embed
    if embedding_manager is not None:
        try:
            vector = embedding_manager.calculate_embedding('health check')
            health_status['bedrock_embed'] = {
                'healthy': len(vector) == embedding_manager.dimensions,
                'service': 'Amazon Bedrock Embed',
                'model': config.bedrock_embed.model_id,
                'loaded': embedding_manager.is_loaded
            }
        except Exception as e:
            logger.error(f'Bedrock Embed health probe failed: {e}')
            health_status['bedrock_embed'] = {'healthy': False, 'service': 'Amazon Bedrock Embed', 'error': str(e)}

    return health_status
