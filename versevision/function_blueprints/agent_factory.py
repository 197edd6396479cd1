"""
Factory module for creating and managing the poet agent instance.
"""

import logging
from functools import lru_cache
from typing import Optional

from versevision.agents.base import PoemGenerator
from versevision.agents.poet_agent import AzureOpenAIPoetAgent

logger = logging.getLogger(__name__)

_override: Optional[PoemGenerator] = None


@lru_cache(maxsize=1)
def _create_poet_agent() -> AzureOpenAIPoetAgent:
    """
    Create the Azure OpenAI poet agent from environment configuration.

    Raises:
        ConfigurationError: If endpoint or deployment settings are missing
    """
    agent = AzureOpenAIPoetAgent()
    logger.info("Created poet agent for deployment %s", agent.deployment)
    return agent


def get_poem_generator() -> PoemGenerator:
    if _override is not None:
        return _override
    return _create_poet_agent()


def set_poem_generator(generator: Optional[PoemGenerator]) -> None:
    """Swap the generator used by the HTTP routes; ``None`` restores the default."""
    global _override
    _override = generator
    _create_poet_agent.cache_clear()
