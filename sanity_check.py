"""Advisory plausibility checks for logged sets.

Warnings never block a write; callers decide whether to ask the user to
confirm before persisting.
"""
import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

MAX_STRENGTH_WEIGHT = 1000
MAX_STRENGTH_REPS = 100
MAX_BODYWEIGHT_REPS = 200
MAX_ENDURANCE_SECONDS = 3600
JUMP_FACTOR = 2


@dataclass(frozen=True)
class SanityWarning:
    code: str
    field: str
    message: str

    def to_dict(self) -> dict:
        return asdict(self)


def _jumped(new: Optional[float], last: Optional[float]) -> bool:
    if new is None or not last or last <= 0:
        return False
    return new >= JUMP_FACTOR * last


def check(kind: str, entry: dict, last: Optional[dict] = None) -> List[SanityWarning]:
    """Return every warning triggered by ``entry`` for a lift of ``kind``.

    ``entry`` and ``last`` are mappings with optional ``weight``, ``reps``
    and ``duration_seconds`` keys. Only increases over ``last`` are
    reported as jumps.
    """
    last = last or {}
    weight = entry.get("weight")
    reps = entry.get("reps")
    warnings: List[SanityWarning] = []
    if kind == "strength":
        if weight is not None and weight > MAX_STRENGTH_WEIGHT:
            warnings.append(
                SanityWarning(
                    "implausible_weight",
                    "weight",
                    f"{weight:g} lbs is more than anyone has lifted. Is that right?",
                )
            )
        if reps is not None and reps > MAX_STRENGTH_REPS:
            warnings.append(
                SanityWarning(
                    "implausible_reps", "reps", f"{reps} reps in one set seems high."
                )
            )
        if _jumped(weight, last.get("weight")):
            warnings.append(
                SanityWarning(
                    "large_jump",
                    "weight",
                    f"{weight:g} lbs is at least double your last {last['weight']:g} lbs.",
                )
            )
        if _jumped(reps, last.get("reps")):
            warnings.append(
                SanityWarning(
                    "large_jump",
                    "reps",
                    f"{reps} reps is at least double your last {last['reps']}.",
                )
            )
    elif kind == "bodyweight":
        if reps is not None and reps > MAX_BODYWEIGHT_REPS:
            warnings.append(
                SanityWarning(
                    "implausible_reps", "reps", f"{reps} reps in one set seems high."
                )
            )
    elif kind == "endurance":
        duration = entry.get("duration_seconds")
        if duration is not None and duration > MAX_ENDURANCE_SECONDS:
            warnings.append(
                SanityWarning(
                    "implausible_duration",
                    "duration_seconds",
                    f"{duration} seconds is over an hour.",
                )
            )
    else:
        raise ValueError(f"invalid lift kind: {kind}")
    if warnings:
        logger.debug("Sanity warnings for %s entry: %s", kind, [w.code for w in warnings])
    return warnings
