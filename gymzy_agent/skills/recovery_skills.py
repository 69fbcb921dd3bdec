"""
Recovery Skills - Classify muscles by recent training volume.

Volume is summed weight x reps over the trailing week, per muscle group.
Classification:
- overworked: volume > high threshold
- undertrained: volume < low threshold (muscles never trained count as 0)
- recovered: everything in between (boundaries inclusive)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from gymzy_agent import config
from gymzy_agent.models import RecoveryClassification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryThresholds:
    """Volume thresholds; low must be strictly below high."""
    high: float = config.RECOVERY_HIGH_VOLUME
    low: float = config.RECOVERY_LOW_VOLUME

    def __post_init__(self):
        if self.low >= self.high:
            raise ValueError(
                f"Recovery thresholds require low < high (low={self.low}, high={self.high})"
            )


def _as_volume(value: Any) -> float:
    """Coerce a volume value; negative or non-numeric values count as zero."""
    try:
        volume = float(value)
    except (TypeError, ValueError):
        return 0.0
    if volume != volume or volume < 0:  # NaN or negative
        return 0.0
    return volume


def analyze_muscle_recovery(
    volumes: Optional[Dict[str, Any]],
    thresholds: Optional[RecoveryThresholds] = None,
    muscles: Optional[Iterable[str]] = None,
) -> RecoveryClassification:
    """
    Split muscles into overworked / recovered / undertrained.

    Args:
        volumes: Muscle -> trailing-week volume. Missing muscles are zero.
        thresholds: Volume thresholds (defaults from config)
        muscles: Muscles to classify in addition to those in `volumes`
            (typically every catalog muscle, so untrained groups surface
            as undertrained)

    Returns:
        RecoveryClassification with three disjoint sets
    """
    thresholds = thresholds or RecoveryThresholds()
    volumes = volumes or {}

    all_muscles = set(volumes.keys())
    if muscles is not None:
        all_muscles.update(muscles)

    overworked, recovered, undertrained = set(), set(), set()
    for muscle in all_muscles:
        volume = _as_volume(volumes.get(muscle, 0))
        if volume > thresholds.high:
            overworked.add(muscle)
        elif volume < thresholds.low:
            undertrained.add(muscle)
        else:
            recovered.add(muscle)

    logger.debug(
        "Recovery analysis: overworked=%s undertrained=%s recovered=%s",
        sorted(overworked), sorted(undertrained), sorted(recovered),
    )
    return RecoveryClassification(
        overworked=frozenset(overworked),
        recovered=frozenset(recovered),
        undertrained=frozenset(undertrained),
    )


__all__ = ["RecoveryThresholds", "analyze_muscle_recovery"]
