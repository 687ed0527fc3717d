"""Per-planet typing pace for the planets' dialogue.

Each planet types at its own speed and waits a random time before and after
its line. All values are seconds; `scale` stretches or zeroes every delay.
"""

import random
from typing import Any

from pydantic import BaseModel


class PlanetPace(BaseModel):
    typing_speed: float
    pause_before: tuple[float, float]
    pause_after: tuple[float, float]


DEFAULT_PACE = PlanetPace(typing_speed=0.03, pause_before=(0.5, 1.0), pause_after=(0.4, 0.8))

PLANET_PACES: dict[str, PlanetPace] = {
    "Луна": PlanetPace(typing_speed=0.04, pause_before=(0.8, 1.2), pause_after=(0.6, 1.0)),
    "Плутон": PlanetPace(typing_speed=0.035, pause_before=(1.2, 1.8), pause_after=(0.8, 1.4)),
    "Венера": PlanetPace(typing_speed=0.025, pause_before=(0.4, 0.8), pause_after=(0.3, 0.6)),
    "Марс": PlanetPace(typing_speed=0.02, pause_before=(0.2, 0.5), pause_after=(0.2, 0.4)),
    "Сатурн": PlanetPace(typing_speed=0.045, pause_before=(1.0, 1.5), pause_after=(0.7, 1.2)),
    "Меркурий": PlanetPace(typing_speed=0.015, pause_before=(0.3, 0.6), pause_after=(0.25, 0.5)),
    "Нептун": PlanetPace(typing_speed=0.05, pause_before=(1.5, 2.2), pause_after=(1.0, 1.8)),
    "Уран": PlanetPace(typing_speed=0.018, pause_before=(0.1, 0.7), pause_after=(0.2, 0.8)),
    "Юпитер": PlanetPace(typing_speed=0.035, pause_before=(0.9, 1.4), pause_after=(0.6, 1.1)),
    "Хирон": PlanetPace(typing_speed=0.038, pause_before=(1.1, 1.6), pause_after=(0.7, 1.3)),
}


class DialoguePacer:
    """Computes the delays around one dialogue line."""

    def __init__(
        self,
        overrides: dict[str, Any] | None = None,
        *,
        scale: float = 1.0,
        rng: random.Random | None = None,
    ) -> None:
        self._paces = dict(PLANET_PACES)
        for planet, pace in (overrides or {}).items():
            base = self._paces.get(planet, DEFAULT_PACE)
            self._paces[planet] = PlanetPace.model_validate({**base.model_dump(), **pace})
        self.scale = scale
        self._rng = rng or random.Random()

    def pace(self, planet: str) -> PlanetPace:
        return self._paces.get(planet, DEFAULT_PACE)

    def _between(self, bounds: tuple[float, float]) -> float:
        low, high = bounds
        return (low + self._rng.random() * (high - low)) * self.scale

    def typing_duration(self, planet: str, text: str) -> float:
        return len(text) * self.pace(planet).typing_speed * self.scale

    def pause_before(self, planet: str) -> float:
        return self._between(self.pace(planet).pause_before)

    def pause_after(self, planet: str) -> float:
        return self._between(self.pace(planet).pause_after)
