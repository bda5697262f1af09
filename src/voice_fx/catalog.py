"""The fixed, ordered effect catalog."""

from __future__ import annotations

import logging

from pydantic import BaseModel

from voice_fx.models import EffectGraph, EffectId, clamp_intensity
from voice_fx.topologies import BUILDERS, passthrough

logger = logging.getLogger(__name__)


class EffectInfo(BaseModel):
    id: EffectId
    name: str
    description: str


CATALOG: tuple[EffectInfo, ...] = (
    EffectInfo(id=EffectId.DELAY, name="Delay", description="Simple echo delay effect"),
    EffectInfo(id=EffectId.REVERB, name="Reverb", description="Hall reverb effect"),
    EffectInfo(id=EffectId.TREMOLO, name="Tremolo", description="Volume oscillation effect"),
    EffectInfo(id=EffectId.PHASER, name="Phaser", description="Sweeping phase effect"),
    EffectInfo(id=EffectId.TELEPHONE, name="Telephone", description="Old phone call effect"),
    EffectInfo(id=EffectId.ECHO, name="Echo Cave", description="Multiple echoes"),
    EffectInfo(id=EffectId.UNDERWATER, name="Underwater", description="Muffled underwater sound"),
    EffectInfo(id=EffectId.RADIO, name="Radio DJ", description="Radio broadcast effect"),
)

_BY_ID: dict[str, EffectInfo] = {info.id.value: info for info in CATALOG}


def list_effects() -> list[EffectInfo]:
    """Return every effect in display order."""
    return list(CATALOG)


def get_effect(effect_id: EffectId | str) -> EffectInfo | None:
    key = effect_id.value if isinstance(effect_id, EffectId) else str(effect_id)
    return _BY_ID.get(key)


def build_effect(effect_id: EffectId | str | None, intensity: float) -> EffectGraph:
    """Build the graph for an effect; unknown IDs get the pass-through graph."""
    info = get_effect(effect_id) if effect_id is not None else None
    if info is None:
        logger.debug("no effect '%s', using pass-through", effect_id)
        return passthrough()
    return BUILDERS[info.id](clamp_intensity(intensity))
