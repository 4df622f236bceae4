"""Tests for the text provider gateway."""

import httpx
import pytest

from conftest import FakeTextProvider, provider_error
from demo_worker import metrics
from demo_worker.config import WorkerConfig
from demo_worker.errors import ConfigurationError, EmptyResponseError, NoProviderAvailableError
from demo_worker.openai_chat import OpenAIProvider
from demo_worker.provider_gateway import (
    GENERATION_PARAMS,
    Capability,
    GenerationParams,
    ProviderGateway,
)


async def test_first_configured_provider_wins():
    first = FakeTextProvider("openai", "from openai")
    second = FakeTextProvider("gemini", "from gemini")

    result = await ProviderGateway([first, second]).generate(Capability.SCRIPT, "prompt")

    assert result.text == "from openai"
    assert result.provider == "openai"
    assert second.calls == []


async def test_falls_back_after_error_and_counts_failure():
    first = FakeTextProvider("openai", error=provider_error("openai", 500))
    second = FakeTextProvider("gemini", "from gemini")

    result = await ProviderGateway([first, second]).generate(Capability.SCRIPT, "prompt")

    assert result.provider == "gemini"
    assert len(first.calls) == 1
    assert metrics.get_snapshot()["counters"]["provider.openai.failures"] == 1


async def test_empty_answer_counts_as_failure():
    first = FakeTextProvider("openai", "")
    second = FakeTextProvider("anthropic", "from claude")

    result = await ProviderGateway([first, second]).generate(Capability.RESPONSE, "hi")

    assert result.provider == "anthropic"


async def test_unconfigured_providers_are_skipped_silently():
    skipped = FakeTextProvider("openai", "never", configured=False)
    used = FakeTextProvider("gemini", "from gemini")

    result = await ProviderGateway([skipped, used]).generate(Capability.SCRIPT, "prompt")

    assert result.provider == "gemini"
    assert skipped.calls == []
    assert "provider.openai.failures" not in metrics.get_snapshot()["counters"]


async def test_nothing_configured_is_a_configuration_error():
    gateway = ProviderGateway([FakeTextProvider("openai", "x", configured=False)])

    with pytest.raises(ConfigurationError):
        await gateway.generate(Capability.SCRIPT, "prompt")


async def test_all_failing_reports_every_attempt():
    gateway = ProviderGateway([
        FakeTextProvider("openai", error=provider_error("openai", 429)),
        FakeTextProvider("gemini", error=EmptyResponseError("gemini")),
    ])

    with pytest.raises(NoProviderAvailableError) as exc_info:
        await gateway.generate(Capability.SCRIPT, "prompt")

    assert set(exc_info.value.attempts) == {"openai", "gemini"}
    assert "429" in exc_info.value.attempts["openai"]


async def test_each_provider_is_tried_once():
    flaky = FakeTextProvider("openai", error=provider_error("openai"))

    with pytest.raises(NoProviderAvailableError):
        await ProviderGateway([flaky]).generate(Capability.SCRIPT, "prompt")

    assert len(flaky.calls) == 1


@pytest.mark.parametrize("capability", list(Capability))
async def test_capability_parameters_are_forwarded(capability):
    provider = FakeTextProvider("openai", "ok")

    await ProviderGateway([provider]).generate(capability, "prompt")

    params = GENERATION_PARAMS[capability]
    assert provider.calls[0]["max_tokens"] == params.max_tokens
    assert provider.calls[0]["temperature"] == params.temperature
    assert provider.calls[0]["system_prompt"] == params.system_prompt


async def test_explicit_params_override_capability_defaults():
    provider = FakeTextProvider("openai", "ok")
    params = GenerationParams(system_prompt="custom", max_tokens=10, temperature=0.1)

    await ProviderGateway([provider]).generate(Capability.SCRIPT, "prompt", params)

    assert provider.calls[0]["system_prompt"] == "custom"
    assert provider.calls[0]["max_tokens"] == 10


def test_script_and_response_budgets():
    assert GENERATION_PARAMS[Capability.SCRIPT].max_tokens == 2000
    assert GENERATION_PARAMS[Capability.SCRIPT].temperature == 0.7
    assert GENERATION_PARAMS[Capability.RESPONSE].max_tokens == 512
    assert GENERATION_PARAMS[Capability.RESPONSE].temperature == 0.8


def test_from_config_follows_configured_order():
    config = WorkerConfig(
        text_provider_order=["anthropic", "openai"],
        anthropic_api_key="a",
    )

    gateway = ProviderGateway.from_config(config)

    assert gateway.provider_names == ["anthropic", "openai"]
    assert gateway.configured() == ["anthropic"]


async def test_non_json_success_body_falls_through():
    html = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    first = OpenAIProvider(WorkerConfig(openai_api_key="sk-test"), transport=html)
    second = FakeTextProvider("gemini", "second answer")

    result = await ProviderGateway([first, second]).generate(Capability.SCRIPT, "prompt")

    assert result.text == "second answer"
    assert result.provider == "gemini"
    assert metrics.get_snapshot()["counters"]["provider.openai.failures"] == 1
