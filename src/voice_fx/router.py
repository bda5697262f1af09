"""Signal routing -- patch one effect graph between a source and a sink."""

from __future__ import annotations

import logging

import numpy as np

from voice_fx import settings
from voice_fx.catalog import build_effect
from voice_fx.engine import GraphRunner, RunnerClosedError
from voice_fx.models import EffectId, clamp_intensity

logger = logging.getLogger(__name__)


class Patch:
    """Owned handle on one live effect graph.

    Created by :func:`set_effect`; the caller owns it until it is passed back
    to :func:`set_effect` or closed.
    """

    def __init__(self, runner: GraphRunner, effect_id: str, intensity: int) -> None:
        self.runner = runner
        self.effect_id = effect_id
        self.intensity = intensity

    @property
    def closed(self) -> bool:
        return self.runner.closed

    def process(self, block: np.ndarray) -> np.ndarray:
        return self.runner.process(block)

    def close(self) -> None:
        self.runner.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Patch({self.effect_id!r}, {self.intensity}, {state})"


def set_effect(
    previous: Patch | None,
    effect_id: EffectId | str | None,
    intensity: float,
    *,
    sample_rate: float | None = None,
    channels: int = 1,
    block_size: int | None = None,
) -> Patch:
    """Tear down ``previous`` (best-effort) and return a patch for the new effect.

    Unknown effect IDs patch the pass-through graph.
    """
    if previous is not None:
        try:
            previous.close()
        except RunnerClosedError:
            logger.debug("previous patch %r was already torn down", previous)

    level = clamp_intensity(intensity)
    graph = build_effect(effect_id, level)
    runner = GraphRunner(graph, sample_rate, channels, block_size)
    key = effect_id.value if isinstance(effect_id, EffectId) else str(effect_id or "")
    logger.debug("patched '%s' at %d", graph.name, level)
    return Patch(runner, key, level)


class SignalRouter:
    """Routes source blocks through the active patch to a sink at a fixed level.

    One router per processing context (preview, recording). It owns exactly
    one patch at a time.
    """

    def __init__(
        self,
        sample_rate: float | None = None,
        channels: int = 1,
        level: float = settings.PREVIEW_LEVEL,
        block_size: int | None = None,
    ) -> None:
        self.sample_rate = float(sample_rate or settings.DEFAULT_SAMPLE_RATE)
        self.channels = channels
        self.level = level
        self.block_size = block_size
        self.patch: Patch | None = None

    def set_effect(self, effect_id: EffectId | str | None, intensity: float) -> Patch:
        self.patch = set_effect(
            self.patch,
            effect_id,
            intensity,
            sample_rate=self.sample_rate,
            channels=self.channels,
            block_size=self.block_size,
        )
        return self.patch

    def process(self, block: np.ndarray) -> np.ndarray:
        """Route one ``(channels, frames)`` block; pass-through when unpatched."""
        block = np.atleast_2d(np.asarray(block, dtype=np.float64))
        if self.patch is None:
            return block * self.level
        return self.patch.process(block) * self.level

    def close(self) -> None:
        if self.patch is not None:
            try:
                self.patch.close()
            except RunnerClosedError:
                logger.debug("patch %r was already torn down", self.patch)
            self.patch = None
