"""Error kinds surfaced by the analysis engine."""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for all analysis failures."""


class ConfigurationMissing(AnalysisError):
    """Live mode was requested without an endpoint and/or API key."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            "Live mode requires both an agent endpoint and an API key "
            f"(missing: {', '.join(missing)})"
        )


class UpstreamUnavailable(AnalysisError):
    """The live agent could not be reached or returned an unusable body."""


class UpstreamRejected(AnalysisError):
    """The live agent answered with a non-success HTTP status."""

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Agent API error: {status_code} {reason}".rstrip())


class FixtureLoadError(AnalysisError):
    """The scenario fixture is missing or malformed.  Fatal at startup."""
