"""
Text provider gateway.

Holds an ordered strategy list of text providers. A request walks the list
once: unconfigured providers are skipped silently, the first non-empty answer
wins, and a failure moves on to the next provider. There is no retry of the
same provider and no caching.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel

from . import metrics
from .claude import ClaudeProvider
from .config import WorkerConfig
from .errors import ConfigurationError, NoProviderAvailableError, ProviderCallError
from .gemini import GeminiProvider
from .openai_chat import OpenAIProvider

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    SCRIPT = "script"
    RESPONSE = "response"


class GenerationParams(BaseModel):
    system_prompt: str
    max_tokens: int
    temperature: float


GENERATION_PARAMS = {
    Capability.SCRIPT: GenerationParams(
        system_prompt=(
            "You are an expert technical presenter who creates engaging demo scripts "
            "for developers. Create clear, concise, and compelling scripts that "
            "explain code in an accessible way."
        ),
        max_tokens=2000,
        temperature=0.7,
    ),
    Capability.RESPONSE: GenerationParams(
        system_prompt=(
            "You are an expert software engineer having a friendly conversation about "
            "code. Keep responses conversational, helpful, and concise."
        ),
        max_tokens=512,
        temperature=0.8,
    ),
}


class TextProvider(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    async def generate(
        self,
        prompt: str,
        *,
        system_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str: ...


class GatewayResult(BaseModel):
    text: str
    provider: str


PROVIDER_CLASSES = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "anthropic": ClaudeProvider,
}


class ProviderGateway:
    def __init__(self, providers: list[TextProvider]):
        self._providers = list(providers)

    @classmethod
    def from_config(cls, config: WorkerConfig) -> "ProviderGateway":
        """Instantiate providers in the configured priority order."""
        return cls([PROVIDER_CLASSES[name](config) for name in config.text_provider_order])

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]

    def configured(self) -> list[str]:
        return [p.name for p in self._providers if p.is_configured()]

    async def generate(
        self,
        capability: Capability,
        prompt: str,
        params: Optional[GenerationParams] = None,
    ) -> GatewayResult:
        """
        Return the first successful completion for ``prompt``.

        Raises:
            ConfigurationError:       no provider has credentials.
            NoProviderAvailableError: every configured provider failed.
        """
        params = params or GENERATION_PARAMS[capability]
        attempts: dict[str, str] = {}

        for provider in self._providers:
            if not provider.is_configured():
                continue
            try:
                text = await provider.generate(
                    prompt,
                    system_prompt=params.system_prompt,
                    max_tokens=params.max_tokens,
                    temperature=params.temperature,
                )
            except ProviderCallError as e:
                attempts[provider.name] = str(e)
                metrics.inc_counter(f"provider.{provider.name}.failures")
                logger.warning(f"{capability.value} via {provider.name} failed: {e}")
                continue

            logger.info(f"{capability.value} generated by {provider.name} ({len(text)} chars)")
            return GatewayResult(text=text, provider=provider.name)

        if not attempts:
            raise ConfigurationError(
                f"No text provider configured (tried: {', '.join(self.provider_names) or 'none'})"
            )
        logger.error(f"All text providers failed for {capability.value}: {attempts}")
        raise NoProviderAvailableError(attempts)
