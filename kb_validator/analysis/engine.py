"""Analysis engine: scenario classification with fallback extraction, or a live agent."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from kb_validator.agent.client import LiveAgentClient
from kb_validator.analysis import fallback
from kb_validator.analysis.catalog import ScenarioCatalog, default_catalog, load_catalog
from kb_validator.analysis.classifier import classify_with_match
from kb_validator.analysis.response import StructuredResponse
from kb_validator.config import AgentConfig, AppConfig, resolve_api_key
from kb_validator.errors import ConfigurationMissing

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Simulated latency
# ---------------------------------------------------------------------------


class Delay(Protocol):
    def __call__(self) -> Awaitable[None]: ...


class UniformDelay:
    """Non-blocking pause sampled uniformly from ``[min_ms, max_ms)``."""

    def __init__(
        self,
        min_ms: float = 1500.0,
        max_ms: float = 2500.0,
        rng: random.Random | None = None,
    ) -> None:
        if min_ms < 0 or max_ms < min_ms:
            raise ValueError(f"Invalid delay range [{min_ms}, {max_ms})")
        self.min_ms = min_ms
        self.max_ms = max_ms
        self._rng = rng or random.Random()

    def sample_ms(self) -> float:
        return self.min_ms + self._rng.random() * (self.max_ms - self.min_ms)

    async def __call__(self) -> None:
        await asyncio.sleep(self.sample_ms() / 1000.0)


class NoDelay:
    """Zero-latency stand-in for tests and ``--no-delay``."""

    async def __call__(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class AnalysisResult:
    """Engine output plus how it was produced."""

    response: StructuredResponse
    mode: str
    scenario_id: str | None = None  # None = fallback extraction or live agent
    matched_keyword: str | None = None
    elapsed_ms: float = 0.0


LiveClientFactory = Callable[[AgentConfig], LiveAgentClient]


def _default_live_client(agent: AgentConfig) -> LiveAgentClient:
    return LiveAgentClient(
        endpoint=agent.endpoint or "",
        api_key=resolve_api_key(agent) or "",
        timeout=agent.timeout,
    )


class AnalysisEngine:
    """Maps submitted text to a structured response.

    Each instance owns its configuration; several independently
    configured engines may coexist.  The catalog is shared read-only.
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        catalog: ScenarioCatalog | None = None,
        delay: Delay | None = None,
        live_client_factory: LiveClientFactory = _default_live_client,
    ) -> None:
        self._config = dataclasses.replace(config) if config else AgentConfig()
        self._catalog = catalog if catalog is not None else default_catalog()
        self._delay = delay if delay is not None else UniformDelay()
        self._live_client_factory = live_client_factory

    @property
    def config(self) -> AgentConfig:
        return dataclasses.replace(self._config)

    @property
    def catalog(self) -> ScenarioCatalog:
        return self._catalog

    def update_config(self, **changes) -> AgentConfig:
        """Replace the configuration; calls already in flight keep their snapshot."""
        self._config = dataclasses.replace(self._config, **changes)
        logger.info("Agent config updated (mode=%s)", self._config.mode)
        return self.config

    def set_delay(self, delay: Delay) -> None:
        self._delay = delay

    async def analyze(self, text: str) -> StructuredResponse:
        """Analyze *text* and return the structured response.

        Raises:
            ConfigurationMissing: Live mode without an endpoint or API key.
            UpstreamUnavailable: Live agent unreachable or returned garbage.
            UpstreamRejected: Live agent answered with a non-success status.
        """
        result = await self.analyze_detailed(text)
        return result.response

    async def analyze_detailed(self, text: str) -> AnalysisResult:
        """Like :meth:`analyze`, but also reports the scenario that matched."""
        config = self._config  # snapshot; update_config swaps the object
        t0 = time.monotonic()

        if config.mode == "live":
            result = await self._analyze_live(text, config)
        else:
            result = await self._analyze_simulated(text)

        result.elapsed_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "Analysis done: mode=%s scenario=%s intent=%r (%.0fms)",
            result.mode,
            result.scenario_id or "fallback",
            result.response.intent,
            result.elapsed_ms,
        )
        return result

    async def _analyze_simulated(self, text: str) -> AnalysisResult:
        await self._delay()

        match = classify_with_match(text)
        if match is not None:
            scenario = self._catalog.lookup(match.scenario_id)
            if scenario is not None:
                return AnalysisResult(
                    response=scenario.response,
                    mode="simulated",
                    scenario_id=scenario.id,
                    matched_keyword=match.keyword,
                )
            logger.warning(
                "Classifier chose '%s' but the catalog has no such scenario; using fallback.",
                match.scenario_id,
            )

        return AnalysisResult(response=fallback.extract(text), mode="simulated")

    async def _analyze_live(self, text: str, config: AgentConfig) -> AnalysisResult:
        missing: list[str] = []
        if not config.endpoint:
            missing.append("endpoint")
        if not resolve_api_key(config):
            missing.append("API key")
        if missing:
            raise ConfigurationMissing(missing)

        client = self._live_client_factory(config)
        response = await client.analyze(text)
        return AnalysisResult(response=response, mode="live")

    async def test_connection(self) -> dict:
        """Ping the configured live agent.  Never raises."""
        config = self._config
        if not config.endpoint or not resolve_api_key(config):
            return {"ok": False, "message": "Please enter both endpoint URL and API key"}
        return await self._live_client_factory(config).test_connection()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_engine(config: AppConfig, delay: Delay | None = None) -> AnalysisEngine:
    """Build an engine from application config.

    Raises:
        FixtureLoadError: If a custom fixture path is configured and
            cannot be loaded.
    """
    sim = config.simulation
    if sim.fixture_path:
        catalog = load_catalog(Path(sim.fixture_path))
    else:
        catalog = default_catalog()

    if delay is None:
        delay = UniformDelay(min_ms=sim.min_delay_ms, max_ms=sim.max_delay_ms)

    return AnalysisEngine(config=config.agent, catalog=catalog, delay=delay)
