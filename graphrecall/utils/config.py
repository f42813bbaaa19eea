"""
Configuration management for AWS services and retrieval settings.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.getenv(env_name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int
    retry_attempts: int
    retry_delay: float
    idle_timeout: float
    preload: bool


@dataclass
class NeptuneConfig:
    """Configuration for Amazon Neptune graph database."""
    endpoint: str
    port: int
    region: str
    use_ssl: bool
    max_sessions: int
    acquire_timeout: float


@dataclass
class SearchConfig:
    """Configuration for search and graph traversal limits."""
    default_limit: int
    default_threshold: float
    max_graph_depth: int
    max_related_items: int
    max_traversal_depth: int
    traversal_result_limit: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_embed: BedrockEmbedConfig
    neptune: NeptuneConfig
    search: SearchConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v2:0'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1024')),
                                              retry_attempts=int(os.getenv('BEDROCK_EMBED_RETRY_ATTEMPTS', '3')),
                                              retry_delay=float(os.getenv('BEDROCK_EMBED_RETRY_DELAY', '1.0')),
                                              idle_timeout=float(os.getenv('BEDROCK_EMBED_IDLE_TIMEOUT', '600')),
                                              preload=_get_bool('BEDROCK_EMBED_PRELOAD', False))

    # Neptune configuration
    neptune_config = NeptuneConfig(endpoint=os.getenv('NEPTUNE_ENDPOINT', 'localhost'),
                                   port=int(os.getenv('NEPTUNE_PORT', '8182')),
                                   region=os.getenv('NEPTUNE_AWS_REGION', 'us-east-1'),
                                   use_ssl=_get_bool('NEPTUNE_USE_SSL', True),
                                   max_sessions=int(os.getenv('NEPTUNE_MAX_SESSIONS', '10')),
                                   acquire_timeout=float(os.getenv('NEPTUNE_ACQUIRE_TIMEOUT', '30')))

    # Search configuration
    search_config = SearchConfig(default_limit=int(os.getenv('SEARCH_DEFAULT_LIMIT', '10')),
                                 default_threshold=float(os.getenv('SEARCH_DEFAULT_THRESHOLD', '0.1')),
                                 max_graph_depth=int(os.getenv('SEARCH_MAX_GRAPH_DEPTH', '2')),
                                 max_related_items=int(os.getenv('SEARCH_MAX_RELATED_ITEMS', '3')),
                                 max_traversal_depth=int(os.getenv('MAX_TRAVERSAL_DEPTH', '5')),
                                 traversal_result_limit=int(os.getenv('TRAVERSAL_RESULT_LIMIT', '50')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_embed=bedrock_embed_config,
                     neptune=neptune_config,
                     search=search_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
