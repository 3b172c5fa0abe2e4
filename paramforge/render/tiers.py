"""Quality tiers — named resolution limits and timeouts.

``preview`` caps the resolution variables so interactive renders return
quickly; ``full`` leaves the model's own settings alone and only fills in
missing ones; ``draft`` is a coarser preview that forces ``$fn``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Union

from pydantic import BaseModel

from paramforge.config import RESOLUTION_VARIABLES
from paramforge.schema.scalars import is_number

logger = logging.getLogger(__name__)

Number = Union[int, float]


class QualityTier(BaseModel):
    """Resolution limits applied to a snapshot before it is rendered."""

    name: str
    max_fn: Optional[int] = None
    force_fn: bool = False
    min_fa: Optional[Number] = None
    min_fs: Optional[Number] = None
    timeout_ms: int = 30_000
    full: bool = False
    """Full tiers respect the model's ``$fa``/``$fs`` instead of enforcing minimums."""

    def resolution(self) -> dict[str, Any]:
        return {"max_fn": self.max_fn, "min_fa": self.min_fa, "min_fs": self.min_fs}


DRAFT = QualityTier(name="draft", max_fn=24, force_fn=True, min_fa=15, min_fs=3, timeout_ms=20_000)
PREVIEW = QualityTier(name="preview", max_fn=48, min_fa=12, min_fs=2, timeout_ms=30_000)
FULL = QualityTier(name="full", min_fa=12, min_fs=2, timeout_ms=60_000, full=True)

TIERS: dict[str, QualityTier] = {t.name: t for t in (DRAFT, PREVIEW, FULL)}


def get_tier(name: str) -> QualityTier:
    """Look up a tier by name.

    Raises
    ------
    KeyError
        If *name* is not a known tier.
    """
    try:
        return TIERS[name]
    except KeyError:
        raise KeyError(f"Unknown quality tier '{name}'. Known: {sorted(TIERS)}") from None


def apply_quality_settings(values: dict[str, Any], tier: QualityTier) -> dict[str, Any]:
    """Return a copy of *values* with *tier*'s resolution limits applied.

    ``$fn`` is capped at ``max_fn`` (and set to it when ``force_fn``).  Missing
    ``$fa``/``$fs`` get the tier minimums; present ones are raised to the
    minimums except on full tiers.  Non-numeric values are left alone.
    """
    adjusted = dict(values)
    fn_key, fa_key, fs_key = RESOLUTION_VARIABLES

    fn = adjusted.get(fn_key)
    if tier.max_fn is not None:
        if is_number(fn):
            adjusted[fn_key] = min(fn, tier.max_fn)
        elif fn is None and tier.force_fn:
            adjusted[fn_key] = tier.max_fn

    for key, minimum in ((fa_key, tier.min_fa), (fs_key, tier.min_fs)):
        if minimum is None:
            continue
        current = adjusted.get(key)
        if current is None:
            adjusted[key] = minimum
        elif is_number(current) and not tier.full:
            adjusted[key] = max(current, minimum)

    if adjusted != values:
        logger.debug("Applied %s quality settings: %s", tier.name, tier.resolution())
    return adjusted
