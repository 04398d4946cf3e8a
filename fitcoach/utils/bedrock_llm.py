"""
Amazon Bedrock LLM client used by the LLM-backed response synthesizer.
"""

import random
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# Coaching replies are short; a stalled stream should fail fast and retry
CONNECT_TIMEOUT_SECONDS = 10
READ_TIMEOUT_SECONDS = 60


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Amazon Bedrock Converse client with retries and exponential backoff."""

    def __init__(self, config: BedrockLLMConfig):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
        """
        self.config = config
        self.model_id = config.model_id

        self.bedrock_runtime = boto3.client(
            'bedrock-runtime',
            region_name=config.region,
            config=BotoConfig(
                connect_timeout=CONNECT_TIMEOUT_SECONDS,
                read_timeout=READ_TIMEOUT_SECONDS,
                retries={'max_attempts': 0}  # retried in generate_response
            ))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def generate_response(self,
                          messages: List[Dict[str, Any]],
                          system_prompt: str,
                          max_tokens: Optional[int] = None,
                          temperature: Optional[float] = None) -> Tuple[str, Optional[Dict[str, Any]]]:
        """
        Generate a reply with the Converse streaming API.

        Args:
            messages: Conversation in Bedrock Converse format
            system_prompt: System prompt for the conversation
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Sampling temperature (uses config default if None)

        Returns:
            Tuple of (response_text, usage_and_latency_metrics)

        Raises:
            BedrockLLMError: If every attempt fails
        """
        inference_config = {
            'maxTokens': max_tokens if max_tokens is not None else self.config.max_tokens,
            'temperature': temperature if temperature is not None else self.config.temperature,
        }
        attempts = max(self.config.retry_attempts, 1)

        for attempt in range(attempts):
            try:
                logger.debug(f'Bedrock LLM request attempt {attempt + 1}/{attempts}')
                response = self.bedrock_runtime.converse_stream(modelId=self.model_id,
                                                                messages=messages,
                                                                system=[{'text': system_prompt}],
                                                                inferenceConfig=inference_config)
                text, metrics = self._read_stream(response.get('stream') or [])
                logger.debug(f'Bedrock LLM response generated successfully (length: {len(text)})')
                return text, metrics

            except (ClientError, BotoCoreError) as e:
                logger.warning(f'Bedrock LLM attempt {attempt + 1}/{attempts} failed: {e}')
                if attempt == attempts - 1:
                    raise BedrockLLMError(f'Bedrock LLM failed after {attempts} attempts: {e}')
                time.sleep(self._backoff_delay(attempt))

            except Exception as e:
                logger.error(f'Unexpected error in Bedrock LLM: {e}')
                raise BedrockLLMError(f'Unexpected Bedrock LLM error: {e}')

        raise BedrockLLMError(f'Bedrock LLM failed after {attempts} attempts')

    def _backoff_delay(self, attempt: int) -> float:
        # Exponential backoff with jitter
        return self.config.retry_delay * (2**attempt) + random.uniform(0, 1)

    @staticmethod
    def _read_stream(stream: Iterable[Dict[str, Any]]) -> Tuple[str, Optional[Dict[str, Any]]]:
        chunks = []
        metrics = None
        for event in stream:
            if 'contentBlockDelta' in event:
                chunks.append(event['contentBlockDelta']['delta'].get('text', ''))
            if 'metadata' in event:
                metrics = {**event['metadata'].get('usage', {}), **event['metadata'].get('metrics', {})}
        return ''.join(chunks), metrics
