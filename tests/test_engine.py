"""Tests for the analysis engine orchestration."""

from __future__ import annotations

import asyncio
import random
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kb_validator.analysis.catalog import load_catalog
from kb_validator.analysis.engine import (
    AnalysisEngine,
    NoDelay,
    UniformDelay,
    create_engine,
)
from kb_validator.analysis.response import StructuredResponse
from kb_validator.config import AgentConfig, AppConfig
from kb_validator.errors import ConfigurationMissing, FixtureLoadError

_MANUFACTURING_TEXT = (
    "We need 50 stainless steel tanks with ASME certification, "
    "316L material, pressure vessel welding"
)


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def engine(catalog) -> AnalysisEngine:
    return AnalysisEngine(config=AgentConfig(), catalog=catalog, delay=NoDelay())


def _live_response() -> StructuredResponse:
    return StructuredResponse(intent="Remote", routing="Remote Team", confidence=0.9)


# ── Simulated mode ───────────────────────────────────────────────────


class TestSimulatedMode:
    @pytest.mark.asyncio
    async def test_scenario_hit_returns_canonical_response(self, engine, catalog) -> None:
        response = await engine.analyze(_MANUFACTURING_TEXT)
        expected = catalog.lookup("manufacturing-custom-fabrication").response
        assert response == expected

    @pytest.mark.asyncio
    async def test_repeated_calls_are_identical(self, engine) -> None:
        first = await engine.analyze(_MANUFACTURING_TEXT)
        second = await engine.analyze(_MANUFACTURING_TEXT)
        assert first.to_dict() == second.to_dict()

    @pytest.mark.asyncio
    async def test_mutating_result_does_not_affect_catalog(self, engine) -> None:
        first = await engine.analyze(_MANUFACTURING_TEXT)
        first.items.clear()
        first.extracted_metadata["customer"] = "someone else"

        second = await engine.analyze(_MANUFACTURING_TEXT)
        assert second.items
        assert second.extracted_metadata["customer"] == "Cascade Brewing"

    @pytest.mark.asyncio
    async def test_miss_uses_fallback(self, engine) -> None:
        response = await engine.analyze("Please send details to bob@example.com")
        assert response.intent == "Information Request"
        assert response.routing == "Customer Support > General Team"
        assert response.items[0].sku == "EMAIL-CONTACT"

    @pytest.mark.asyncio
    async def test_empty_text_uses_fallback(self, engine) -> None:
        response = await engine.analyze("")
        assert response.intent == "General Inquiry"
        assert response.items == []
        assert response.extracted_metadata["word_count"] == 0

    @pytest.mark.asyncio
    async def test_detailed_result_reports_scenario(self, engine) -> None:
        result = await engine.analyze_detailed(_MANUFACTURING_TEXT)
        assert result.mode == "simulated"
        assert result.scenario_id == "manufacturing-custom-fabrication"
        assert result.matched_keyword == "stainless steel"
        assert result.elapsed_ms >= 0

        miss = await engine.analyze_detailed("hello")
        assert miss.scenario_id is None

    @pytest.mark.asyncio
    async def test_delay_is_awaited_once_per_call(self, catalog) -> None:
        delay = AsyncMock()
        engine = AnalysisEngine(catalog=catalog, delay=delay)
        await engine.analyze("hello")
        delay.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_scenario_in_catalog_falls_back(self, tmp_path) -> None:
        # A catalog without the manufacturing entry forces the fallback path
        import json

        fixture = tmp_path / "fixture.json"
        fixture.write_text(json.dumps({"scenarios": []}), encoding="utf-8")
        engine = AnalysisEngine(catalog=load_catalog(fixture), delay=NoDelay())
        response = await engine.analyze(_MANUFACTURING_TEXT)
        assert response.routing == "Customer Support > General Team"


# ── Live mode ────────────────────────────────────────────────────────


class TestLiveMode:
    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_network(self, catalog, monkeypatch) -> None:
        monkeypatch.delenv("KB_VALIDATOR_API_KEY", raising=False)
        factory = MagicMock()
        engine = AnalysisEngine(
            config=AgentConfig(mode="live", endpoint="https://agent.example/api"),
            catalog=catalog,
            delay=NoDelay(),
            live_client_factory=factory,
        )
        with pytest.raises(ConfigurationMissing) as exc_info:
            await engine.analyze("anything")
        assert factory.call_count == 0
        assert exc_info.value.missing == ["API key"]

    @pytest.mark.asyncio
    async def test_missing_api_key_issues_no_http_request(self, catalog, monkeypatch) -> None:
        monkeypatch.delenv("KB_VALIDATOR_API_KEY", raising=False)
        engine = AnalysisEngine(
            config=AgentConfig(mode="live", endpoint="https://agent.example/api"),
            catalog=catalog,
        )
        with patch("httpx.AsyncClient") as MockClient:
            with pytest.raises(ConfigurationMissing):
                await engine.analyze("anything")
        assert MockClient.call_count == 0

    @pytest.mark.asyncio
    async def test_missing_both_names_both(self, catalog, monkeypatch) -> None:
        monkeypatch.delenv("KB_VALIDATOR_API_KEY", raising=False)
        engine = AnalysisEngine(config=AgentConfig(mode="live"), catalog=catalog)
        with pytest.raises(ConfigurationMissing) as exc_info:
            await engine.analyze("anything")
        message = str(exc_info.value)
        assert "endpoint" in message
        assert "API key" in message

    @pytest.mark.asyncio
    async def test_api_key_from_env(self, catalog, monkeypatch) -> None:
        monkeypatch.setenv("KB_VALIDATOR_API_KEY", "env-key")
        client = MagicMock()
        client.analyze = AsyncMock(return_value=_live_response())
        factory = MagicMock(return_value=client)
        engine = AnalysisEngine(
            config=AgentConfig(mode="live", endpoint="https://agent.example/api"),
            catalog=catalog,
            live_client_factory=factory,
        )
        response = await engine.analyze("text")
        assert response.intent == "Remote"
        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_live_skips_delay_and_classifier(self, catalog) -> None:
        delay = AsyncMock()
        client = MagicMock()
        client.analyze = AsyncMock(return_value=_live_response())
        engine = AnalysisEngine(
            config=AgentConfig(mode="live", endpoint="https://a.example", api_key="k"),
            catalog=catalog,
            delay=delay,
            live_client_factory=lambda cfg: client,
        )
        result = await engine.analyze_detailed(_MANUFACTURING_TEXT)
        assert result.mode == "live"
        assert result.scenario_id is None
        assert result.response.intent == "Remote"
        client.analyze.assert_awaited_once_with(_MANUFACTURING_TEXT)
        delay.assert_not_awaited()


# ── Configuration ────────────────────────────────────────────────────


class TestConfiguration:
    def test_engines_are_independent(self, catalog) -> None:
        a = AnalysisEngine(config=AgentConfig(), catalog=catalog, delay=NoDelay())
        b = AnalysisEngine(config=AgentConfig(), catalog=catalog, delay=NoDelay())
        a.update_config(mode="live", endpoint="https://a.example")
        assert a.config.mode == "live"
        assert b.config.mode == "simulated"

    def test_constructor_copies_config(self, catalog) -> None:
        cfg = AgentConfig()
        engine = AnalysisEngine(config=cfg, catalog=catalog, delay=NoDelay())
        cfg.mode = "live"
        assert engine.config.mode == "simulated"

    @pytest.mark.asyncio
    async def test_update_mid_flight_keeps_snapshot(self, catalog) -> None:
        gate = asyncio.Event()

        async def wait_for_gate() -> None:
            await gate.wait()

        engine = AnalysisEngine(config=AgentConfig(), catalog=catalog, delay=wait_for_gate)
        task = asyncio.create_task(engine.analyze_detailed("hello"))
        await asyncio.sleep(0)
        engine.update_config(mode="live")
        gate.set()
        result = await task
        assert result.mode == "simulated"

    @pytest.mark.asyncio
    async def test_test_connection_without_config(self, catalog, monkeypatch) -> None:
        monkeypatch.delenv("KB_VALIDATOR_API_KEY", raising=False)
        engine = AnalysisEngine(config=AgentConfig(), catalog=catalog)
        result = await engine.test_connection()
        assert result["ok"] is False
        assert "endpoint" in result["message"]


# ── Delay primitive ──────────────────────────────────────────────────


class TestUniformDelay:
    def test_samples_within_range(self) -> None:
        delay = UniformDelay(rng=random.Random(42))
        samples = [delay.sample_ms() for _ in range(200)]
        assert all(1500 <= s < 2500 for s in samples)

    def test_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError):
            UniformDelay(min_ms=100, max_ms=50)

    @pytest.mark.asyncio
    async def test_sleeps_without_blocking(self) -> None:
        delay = UniformDelay(min_ms=10, max_ms=20)
        with patch("kb_validator.analysis.engine.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            await delay()
        (seconds,), _ = mock_sleep.await_args
        assert 0.010 <= seconds < 0.020


class TestCreateEngine:
    def test_uses_configured_delay_range(self) -> None:
        cfg = AppConfig()
        cfg.simulation.min_delay_ms = 0.0
        cfg.simulation.max_delay_ms = 5.0
        engine = create_engine(cfg)
        assert isinstance(engine._delay, UniformDelay)
        assert engine._delay.max_ms == 5.0

    def test_bad_fixture_path_is_fatal(self, tmp_path) -> None:
        cfg = AppConfig()
        cfg.simulation.fixture_path = str(tmp_path / "missing.json")
        with pytest.raises(FixtureLoadError):
            create_engine(cfg)
