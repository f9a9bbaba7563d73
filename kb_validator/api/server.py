"""FastAPI server for the kb-validator tool."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from kb_validator.analysis.engine import AnalysisEngine, UniformDelay, create_engine
from kb_validator.analysis.input_type import detect_input_type
from kb_validator.config import (
    HOT_SECTIONS,
    AppConfig,
    apply_section,
    config_to_dict,
    load_config,
    save_config,
)
from kb_validator.errors import (
    ConfigurationMissing,
    UpstreamRejected,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)

# ── Request / Response models ────────────────────────────────────────


class AnalyzeRequest(BaseModel):
    input: str = Field(min_length=1)


class AnalyzeResponse(BaseModel):
    response: dict[str, Any]
    detected_type: str | None = None
    scenario_id: str | None = None
    mode: str
    elapsed_ms: float


class ScenarioSummary(BaseModel):
    id: str
    input: str


class ScenarioDetail(BaseModel):
    id: str
    input: str
    response: dict[str, Any]


# ── App factory ──────────────────────────────────────────────────────


def create_app(
    config: AppConfig | None = None,
    engine: AnalysisEngine | None = None,
    config_path: Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Optional AppConfig (loaded from config.yaml if None).
        engine: Optional pre-built engine (tests inject one with no delay).
        config_path: Where ``PATCH /api/config`` persists changes.

    Returns:
        Configured FastAPI app.

    Raises:
        FixtureLoadError: If the scenario catalog cannot be loaded.
    """
    if config is None:
        config = load_config(config_path)

    if engine is None:
        engine = create_engine(config)

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        logger.info(
            "Serving %d scenarios in %s mode", len(engine.catalog), engine.config.mode
        )
        yield

    app = FastAPI(
        title="KB Validator",
        description="Structured analysis of RFPs, support emails and bids",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.engine = engine

    # ── Routes ───────────────────────────────────────────────────────

    @app.get("/api/health")
    async def health() -> dict:
        eng: AnalysisEngine = app.state.engine
        return {
            "status": "ok",
            "mode": eng.config.mode,
            "scenarios": len(eng.catalog),
        }

    @app.get("/api/scenarios", response_model=list[ScenarioSummary])
    async def list_scenarios() -> list[ScenarioSummary]:
        return [
            ScenarioSummary(id=s.id, input=s.input)
            for s in app.state.engine.catalog.all()
        ]

    @app.get("/api/scenarios/{scenario_id}", response_model=ScenarioDetail)
    async def get_scenario(scenario_id: str) -> ScenarioDetail:
        scenario = app.state.engine.catalog.lookup(scenario_id)
        if scenario is None:
            raise HTTPException(status_code=404, detail=f"Unknown scenario: {scenario_id}")
        return ScenarioDetail(
            id=scenario.id, input=scenario.input, response=scenario.response.to_dict()
        )

    @app.post("/api/analyze", response_model=AnalyzeResponse)
    async def analyze(req: AnalyzeRequest) -> AnalyzeResponse:
        """Classify the submitted text and return its structured analysis."""
        cfg: AppConfig = app.state.config
        if not req.input.strip():
            raise HTTPException(status_code=422, detail="Input must not be blank.")
        if len(req.input) > cfg.api.max_input_length:
            raise HTTPException(
                status_code=400,
                detail=f"Input too long. Maximum length is {cfg.api.max_input_length} characters.",
            )

        try:
            result = await app.state.engine.analyze_detailed(req.input)
        except ConfigurationMissing as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except (UpstreamRejected, UpstreamUnavailable) as exc:
            logger.error("Live agent failed: %s", exc)
            raise HTTPException(status_code=502, detail=str(exc))

        return AnalyzeResponse(
            response=result.response.to_dict(),
            detected_type=detect_input_type(req.input),
            scenario_id=result.scenario_id,
            mode=result.mode,
            elapsed_ms=result.elapsed_ms,
        )

    @app.get("/api/config")
    async def get_config() -> dict:
        """Return current configuration with the API key redacted."""
        return config_to_dict(app.state.config)

    @app.patch("/api/config")
    async def update_config(request: Request) -> dict:
        """Partial config update.  Agent and simulation sections are
        hot-applied to the engine; the API section needs a restart.
        """
        body = await request.json()
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Expected JSON object")

        cfg: AppConfig = app.state.config
        restart_sections: list[str] = []

        for section_name, section_data in body.items():
            if not isinstance(section_data, dict):
                continue
            if not apply_section(cfg, section_name, section_data):
                logger.debug("Ignoring unknown config section '%s'", section_name)
                continue
            if section_name not in HOT_SECTIONS:
                restart_sections.append(section_name)

        eng: AnalysisEngine = app.state.engine
        if "agent" in body:
            eng.update_config(**vars(cfg.agent))
        if "simulation" in body:
            eng.set_delay(
                UniformDelay(
                    min_ms=cfg.simulation.min_delay_ms,
                    max_ms=cfg.simulation.max_delay_ms,
                )
            )

        save_config(cfg, config_path)

        return {
            "saved": True,
            "restart_required": len(restart_sections) > 0,
            "restart_sections": restart_sections,
        }

    @app.post("/api/agent/test")
    async def test_agent_connection() -> dict:
        """Ping the configured live agent endpoint."""
        return await app.state.engine.test_connection()

    return app
