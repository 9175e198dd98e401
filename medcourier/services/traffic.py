"""
Simulated traffic model.

Traffic is a coarse runtime modifier of simulated courier speed; it is never
persisted and does not come from a real traffic feed.
"""

import enum
import logging
import random
from typing import Dict, Optional

from medcourier.config import get_settings

logger = logging.getLogger(__name__)


class TrafficCondition(str, enum.Enum):
    """Coarse traffic state."""
    GOOD = "good"
    MODERATE = "moderate"
    HEAVY = "heavy"


TRAFFIC_MESSAGES: Dict[TrafficCondition, str] = {
    TrafficCondition.GOOD: "Traffic is flowing well",
    TrafficCondition.MODERATE: "Moderate traffic conditions",
    TrafficCondition.HEAVY: "Heavy traffic encountered",
}


def step_factor(condition: TrafficCondition) -> float:
    """Multiplier applied to the base simulation step for a condition."""
    return get_settings().traffic_step_factor[condition.value]


class TrafficModel:
    """
    Holds the current traffic condition of one tracking session.

    The condition is drawn uniformly when a session starts and re-rolled
    uniformly with a fixed probability on every tick.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        reroll_probability: Optional[float] = None,
    ) -> None:
        self._rng = rng or random.Random()
        if reroll_probability is None:
            reroll_probability = get_settings().traffic_reroll_probability
        self.reroll_probability = reroll_probability
        self.condition = TrafficCondition.GOOD

    def _draw(self) -> TrafficCondition:
        return self._rng.choice(list(TrafficCondition))

    def initialize(self) -> TrafficCondition:
        """Pick the starting condition for a new session."""
        self.condition = self._draw()
        logger.debug(f"Initial traffic condition: {self.condition.value}")
        return self.condition

    def maybe_reroll(self) -> bool:
        """
        Possibly re-roll the condition for this tick.

        Returns:
            True when the condition changed
        """
        if self._rng.random() >= self.reroll_probability:
            return False

        previous = self.condition
        self.condition = self._draw()
        return self.condition != previous

    @property
    def factor(self) -> float:
        return step_factor(self.condition)

    @property
    def message(self) -> str:
        return TRAFFIC_MESSAGES[self.condition]
