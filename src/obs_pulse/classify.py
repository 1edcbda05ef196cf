"""Frame-drop severity classification and per-tick rates."""

from dataclasses import dataclass
from enum import Enum

THRESHOLD_WARNING = 0.01
THRESHOLD_CRITICAL = 0.05


class Tier(str, Enum):
    """Severity tier for a skipped/total ratio."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class FrameCounter:
    """Classified skipped/total frame counter."""

    skipped: int
    total: int
    ratio: float
    tier: Tier
    label: str


def classify(
    total: int,
    skipped: int,
    warning: float = THRESHOLD_WARNING,
    critical: float = THRESHOLD_CRITICAL,
) -> FrameCounter:
    """Classify a frame counter by its skipped ratio.

    Thresholds are strict: a ratio exactly at a threshold stays in the lower tier.

    Args:
        total: Total frames
        skipped: Skipped frames
        warning: Ratio above which the tier is WARNING
        critical: Ratio above which the tier is CRITICAL

    Returns:
        FrameCounter with ratio, tier and a label like "3/120 (2.5%)"
    """
    ratio = skipped / total if total > 0 else 0.0
    if ratio > critical:
        tier = Tier.CRITICAL
    elif ratio > warning:
        tier = Tier.WARNING
    else:
        tier = Tier.NORMAL
    label = f"{skipped}/{total} ({ratio * 100:.1f}%)"
    return FrameCounter(skipped=skipped, total=total, ratio=ratio, tier=tier, label=label)


def bitrate_kbps(current_bytes: int, previous_bytes: int | None, period_ms: float = 2000) -> float:
    """Throughput over one sampling period, in kilobits per second.

    Bits per millisecond equals kilobits per second. Reports 0 when there is no
    previous reading or the byte counter went backwards (output restarted).
    """
    if previous_bytes is None or previous_bytes > current_bytes:
        return 0.0
    return (current_bytes - previous_bytes) * 8 / period_ms


def frames_dropped(current_skipped: int, previous_skipped: int | None) -> bool:
    """Whether new frames were skipped since the previous tick."""
    if previous_skipped is None:
        return False
    return current_skipped > previous_skipped
