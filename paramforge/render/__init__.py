"""Render orchestration — debouncing, quality tiers, caching and the engine boundary."""

from paramforge.render.cache import PreviewCache, cache_key, canonicalize
from paramforge.render.orchestrator import RenderOrchestrator
from paramforge.render.state import FailureKind, RenderFailure, RenderResult, RenderState, StateDetail
from paramforge.render.tiers import DRAFT, FULL, PREVIEW, TIERS, QualityTier, apply_quality_settings, get_tier

__all__ = [
    "DRAFT",
    "FULL",
    "PREVIEW",
    "TIERS",
    "FailureKind",
    "PreviewCache",
    "QualityTier",
    "RenderFailure",
    "RenderOrchestrator",
    "RenderResult",
    "RenderState",
    "StateDetail",
    "apply_quality_settings",
    "cache_key",
    "canonicalize",
    "get_tier",
]
