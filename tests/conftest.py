"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, ModelConfig, PromptsConfig
from roundtable.invoker import WorkerInvoker
from roundtable.models import AgentResponse, ConsensusResult, RoundContext, RoundResult, Session
from roundtable.rate_limit import RateLimiter
from roundtable.retry import RetryPolicy
from roundtable.toolkit import Toolkit
from roundtable.workers.base import Worker


class FakeClock:
    """Monotonic clock that only moves when told to. Its sleep advances time."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


async def no_sleep(seconds: float) -> None:
    return None


def make_response(
    agent_id: str = "agent",
    position: str = "Use YAML for configuration files",
    confidence: float = 0.8,
    stance: str | None = None,
    round_number: int = 1,
    reasoning: str = "Readable and supports comments.",
) -> AgentResponse:
    return AgentResponse(
        agent_id=agent_id,
        agent_name=agent_id,
        position=position,
        reasoning=reasoning,
        confidence=confidence,
        stance=stance,
        round_number=round_number,
    )


class MockWorker(Worker):
    """Test double Worker.

    generate_response is an AsyncMock, so tests can inspect the contexts it saw
    or swap in side effects. By default it answers with a fixed position.
    """

    def __init__(
        self,
        worker_name: str = "mock",
        position: str = "Use YAML for configuration files",
        confidence: float = 0.8,
        stance: str | None = None,
        provider: str = "mock",
        context_request: tuple[str, str] | None = None,
    ) -> None:
        self._name = worker_name
        self._provider = provider
        self.position = position
        self.confidence = confidence
        self.stance = stance
        self.context_request = context_request
        # Shadow the class methods with AsyncMocks at the instance level.
        self.generate_response = AsyncMock(side_effect=self._respond)  # type: ignore[method-assign]
        self.generate_raw_completion = AsyncMock(return_value="OK")  # type: ignore[method-assign]

    def _respond(self, context: RoundContext, toolkit: Toolkit | None = None) -> AgentResponse:
        if self.context_request and toolkit is not None:
            query, priority = self.context_request
            toolkit.request_context(self._name, query, "needed to answer", priority)
        return make_response(
            agent_id=self._name,
            position=self.position,
            confidence=self.confidence,
            stance=self.stance,
            round_number=context.current_round,
        )

    def agent_id(self) -> str:
        return self._name

    def name(self) -> str:
        return self._name

    def provider(self) -> str:
        return self._provider

    async def generate_response(self, context: RoundContext, toolkit: Toolkit | None = None) -> AgentResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return self._respond(context, toolkit)

    async def generate_raw_completion(self, prompt: str, system_prompt: str | None = None) -> str:  # type: ignore[override]
        return "OK"


def seen_context(worker: MockWorker, call: int = 0) -> RoundContext:
    """The RoundContext passed to the worker's *call*-th generate_response."""
    return worker.generate_response.call_args_list[call].args[0]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(fake_clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=fake_clock, sleep=fake_clock.sleep)


@pytest.fixture
def invoker(rate_limiter: RateLimiter) -> WorkerInvoker:
    return WorkerInvoker(rate_limiter, RetryPolicy(max_retries=2, base_delay_sec=0.01), sleep=no_sleep)


@pytest.fixture
def sample_context() -> RoundContext:
    return RoundContext(
        session_id="s1",
        topic="Should we use YAML or JSON for config?",
        mode="collaborative",
        current_round=1,
        total_rounds=3,
    )


@pytest.fixture
def sample_session() -> Session:
    return Session(
        topic="Should we use YAML or JSON for config?",
        mode="collaborative",
        agent_ids=["alpha", "beta"],
        total_rounds=3,
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        synthesis="Topic: {topic} ({mode})\nAgreement: {agreement}\nTranscript ({rounds} rounds):\n{full_transcript}\n\nSynthesize:",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        rounds=2,
        max_rounds=5,
        output_dir=tmp_path / "output",
        synthesizer="claude",
        default_panel=["claude", "gemini", "openai"],
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-5",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"claude": model_cfg},
        prompts=sample_prompts_config,
        available_providers={"claude"},
    )


@pytest.fixture
def two_mock_workers() -> list[MockWorker]:
    return [MockWorker("alpha"), MockWorker("beta")]


@pytest.fixture
def sample_round() -> RoundResult:
    return RoundResult(
        round_number=1,
        responses=[
            make_response("claude", "Use YAML, it supports comments", 0.8, "YES"),
            make_response("gemini", "Use JSON, tooling is everywhere", 0.6, "NO", reasoning="Every language parses it."),
        ],
        consensus=ConsensusResult(
            agreement_level=0.35,
            disagreement_points=["claude vs gemini on format"],
            summary="Low consensus.",
            analyzer_id="lexical",
        ),
    )
