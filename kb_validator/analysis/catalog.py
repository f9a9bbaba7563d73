"""Scenario catalog loaded from the packaged JSON fixture."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from kb_validator.analysis.response import ResponseFormatError, StructuredResponse
from kb_validator.errors import FixtureLoadError

logger = logging.getLogger(__name__)

DEFAULT_FIXTURE_PATH = (
    Path(__file__).resolve().parent.parent / "data" / "simulated_responses.json"
)


@dataclass
class Scenario:
    """A recognized content archetype and its pre-authored answer."""

    id: str
    input: str
    response: StructuredResponse


class ScenarioCatalog:
    """Read-only, ordered collection of scenarios.

    Lookups hand out deep copies so callers can never alter the stored
    canonical responses.
    """

    def __init__(self, scenarios: list[Scenario]) -> None:
        self._scenarios = list(scenarios)
        self._by_id = {s.id: s for s in self._scenarios}
        if len(self._by_id) != len(self._scenarios):
            raise FixtureLoadError("Scenario ids must be unique")

    def __len__(self) -> int:
        return len(self._scenarios)

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._by_id

    def ids(self) -> list[str]:
        return [s.id for s in self._scenarios]

    def lookup(self, scenario_id: str) -> Scenario | None:
        scenario = self._by_id.get(scenario_id)
        if scenario is None:
            return None
        return Scenario(
            id=scenario.id,
            input=scenario.input,
            response=scenario.response.copy(),
        )

    def all(self) -> list[Scenario]:
        return [self.lookup(s.id) for s in self._scenarios]

    def sample_input(self, scenario_id: str) -> str | None:
        """Example text for *scenario_id* (used to prefill the input)."""
        scenario = self._by_id.get(scenario_id)
        return scenario.input if scenario else None


def load_catalog(path: Path | None = None) -> ScenarioCatalog:
    """Load and validate the scenario fixture.

    Args:
        path: Fixture location; defaults to the file shipped with the package.

    Raises:
        FixtureLoadError: If the file is missing, is not valid JSON, lacks
            a ``scenarios`` list, or contains an invalid scenario.
    """
    if path is None:
        path = DEFAULT_FIXTURE_PATH

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as exc:
        raise FixtureLoadError(f"Scenario fixture not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise FixtureLoadError(f"Scenario fixture {path} is not valid JSON: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise FixtureLoadError(f"Scenario fixture {path} is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise FixtureLoadError(f"Cannot read scenario fixture {path}: {exc}") from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("scenarios"), list):
        raise FixtureLoadError(f"Scenario fixture {path} has no 'scenarios' list")

    scenarios: list[Scenario] = []
    for position, entry in enumerate(raw["scenarios"]):
        if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
            raise FixtureLoadError(f"Scenario #{position} in {path} has no string 'id'")
        try:
            response = StructuredResponse.from_dict(entry.get("response"))
        except ResponseFormatError as exc:
            raise FixtureLoadError(
                f"Scenario '{entry['id']}' in {path} has an invalid response: {exc}"
            ) from exc
        scenarios.append(
            Scenario(id=entry["id"], input=str(entry.get("input", "")), response=response)
        )

    catalog = ScenarioCatalog(scenarios)
    logger.info("Loaded %d scenarios from %s", len(catalog), path)
    return catalog


_default_catalog: ScenarioCatalog | None = None


def default_catalog() -> ScenarioCatalog:
    """The packaged catalog, loaded once per process."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = load_catalog()
    return _default_catalog
