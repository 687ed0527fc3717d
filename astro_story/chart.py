"""Natal chart analysis provider.

Chart text is precomputed elsewhere; this module only carries it into prompts.
"""

from typing import Any, Protocol

from pydantic import BaseModel, Field


class NatalChartAnalysis(BaseModel):
    core_placements: list[str] = Field(default_factory=list)
    hard_aspects: list[str] = Field(default_factory=list)
    soft_aspects: list[str] = Field(default_factory=list)


class ChartProvider(Protocol):
    def analysis(self) -> NatalChartAnalysis: ...

    def birth_data(self) -> str: ...


class StaticChartProvider:
    def __init__(self, analysis: NatalChartAnalysis | None = None, birth_data: str = "") -> None:
        self._analysis = analysis or NatalChartAnalysis()
        self._birth_data = birth_data

    def analysis(self) -> NatalChartAnalysis:
        return self._analysis

    def birth_data(self) -> str:
        return self._birth_data


def serialize_chart_analysis(analysis: NatalChartAnalysis) -> str:
    """Short form for prompts: five placements and three tense aspects."""
    parts = []
    if analysis.core_placements:
        parts.append("Планеты: " + "; ".join(analysis.core_placements[:5]) + ".")
    if analysis.hard_aspects:
        parts.append("Напряжения: " + "; ".join(analysis.hard_aspects[:3]) + ".")
    return " ".join(parts)


def chart_from_config(config: dict[str, Any]) -> StaticChartProvider:
    chart = config.get("chart", {})
    return StaticChartProvider(
        NatalChartAnalysis(
            core_placements=chart.get("core_placements", []),
            hard_aspects=chart.get("hard_aspects", []),
            soft_aspects=chart.get("soft_aspects", []),
        ),
        birth_data=chart.get("birth_data", ""),
    )
