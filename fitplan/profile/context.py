"""Plan context assembly.

A PlanContext is the immutable snapshot of user data that every generation
step is built from. It is captured once when a job is created and stored on
the job, so resuming a job never depends on the live profile.
"""

from __future__ import annotations

import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict

from fitplan.profile.energy import EnergyTargets, compute_energy_targets
from fitplan.profile.models import UserProfile

BODYWEIGHT = "bodyweight"

# Equipment offered during onboarding -> exercise equipment types it unlocks
EQUIPMENT_TYPES: dict[str, tuple[str, ...]] = {
    "Halteres de 2kg": ("dumbbell",),
    "Haltere de 4kg": ("dumbbell",),
    "Haltere de 9kg": ("dumbbell",),
    "Kettlebell de 6kg": ("kettlebell",),
    "Titanium Strength SUPREME Leg Press / Hack Squat": ("machine",),
    "Adidas Home Gym Multi-ginásio": ("cable machine",),
    "Passadeira com elevação e velocidade ajustáveis": ("treadmill",),
    "Bicicleta": ("stationary bike",),
    "Máquina de step": ("step machine",),
    "Banco Adidas": ("bench", "dumbbell"),
    "Bola de ginástica": ("gym ball",),
    "Peso corporal (sem equipamento)": (),
}


class PlanContext(BaseModel):
    """Snapshot of everything needed to generate any step of a plan."""

    model_config = ConfigDict(frozen=True)

    profile: UserProfile
    energy: EnergyTargets
    equipment_types: tuple[str, ...]


def resolve_equipment_types(equipment: list[str]) -> tuple[str, ...]:
    """Map equipment names to exercise equipment types.

    Bodyweight is always available. Unknown names are treated as a type
    themselves so free-form equipment is not silently dropped.
    """
    types: set[str] = {BODYWEIGHT}
    for name in equipment:
        mapped = EQUIPMENT_TYPES.get(name)
        if mapped is None:
            types.add(name.strip().lower())
        else:
            types.update(mapped)
    return tuple(sorted(types))


class ContextCache:
    """Bounded, time-limited memo of assembled plan contexts.

    Entries expire after ttl_seconds; the least recently used entry is evicted
    once max_entries is reached.
    """

    def __init__(
        self,
        max_entries: int = 128,
        ttl_seconds: float = 900.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, PlanContext]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> PlanContext | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, context = entry
        if self._clock() - stored_at > self._ttl_seconds:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return context

    def put(self, key: str, context: PlanContext) -> None:
        self._entries[key] = (self._clock(), context)
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


def profile_cache_key(profile: UserProfile) -> str:
    return hashlib.sha256(profile.model_dump_json().encode("utf-8")).hexdigest()


def build_plan_context(profile: UserProfile, cache: ContextCache | None = None) -> PlanContext:
    """Assemble the generation context for a profile.

    Args:
        profile: User profile
        cache: Optional cache collaborator; contexts are pure functions of the
            profile so identical profiles can share one

    Returns:
        PlanContext snapshot
    """
    key = profile_cache_key(profile) if cache is not None else None
    if cache is not None and key is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.debug("plan_context: Cache hit", cache_key=key[:12])
            return cached

    context = PlanContext(
        profile=profile,
        energy=compute_energy_targets(profile),
        equipment_types=resolve_equipment_types(profile.equipment),
    )

    if cache is not None and key is not None:
        cache.put(key, context)
    return context
