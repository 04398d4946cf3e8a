"""
Configuration management for the coaching engine and its optional AWS backend.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    retry_attempts: int
    retry_delay: float


@dataclass
class EngineConfig:
    """Configuration for the conversational engine."""
    message_window: int
    history_limit: int
    suggestion_limit: int
    synthesizer_backend: str
    async_memory_writes: bool
    max_workers: int
    max_sessions: int
    template_seed: Optional[int]


@dataclass
class MemoryConfig:
    """Configuration for the per-session memory bank and learning models."""
    retention_days: int
    retention_importance: float
    consolidation_importance: float
    cleanup_interval_hours: int
    prediction_history_limit: int
    accuracy_window_hours: int


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
    engine: EngineConfig
    memory: MemoryConfig
    bedrock_llm: BedrockLLMConfig
    mcp: MCPConfig


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, '').strip()
    return int(value) if value else None


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Engine configuration
    engine_config = EngineConfig(message_window=int(os.getenv('COACH_MESSAGE_WINDOW', '10')),
                                 history_limit=int(os.getenv('COACH_HISTORY_LIMIT', '50')),
                                 suggestion_limit=int(os.getenv('COACH_SUGGESTION_LIMIT', '6')),
                                 synthesizer_backend=os.getenv('COACH_SYNTHESIZER_BACKEND', 'template'),
                                 async_memory_writes=_env_bool('COACH_ASYNC_MEMORY_WRITES', 'true'),
                                 max_workers=int(os.getenv('COACH_MAX_WORKERS', '4')),
                                 max_sessions=int(os.getenv('COACH_MAX_SESSIONS', '0')),
                                 template_seed=_env_optional_int('COACH_TEMPLATE_SEED'))

    # Memory configuration
    memory_config = MemoryConfig(retention_days=int(os.getenv('MEMORY_RETENTION_DAYS', '7')),
                                 retention_importance=float(os.getenv('MEMORY_RETENTION_IMPORTANCE', '0.8')),
                                 consolidation_importance=float(os.getenv('MEMORY_CONSOLIDATION_IMPORTANCE', '0.7')),
                                 cleanup_interval_hours=int(os.getenv('MEMORY_CLEANUP_INTERVAL_HOURS', '24')),
                                 prediction_history_limit=int(os.getenv('MEMORY_PREDICTION_HISTORY_LIMIT', '100')),
                                 accuracy_window_hours=int(os.getenv('MEMORY_ACCURACY_WINDOW_HOURS', '24')))

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-sonnet-20240229-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '1024')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.3')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '3')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     engine=engine_config,
                     memory=memory_config,
                     bedrock_llm=bedrock_llm_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
