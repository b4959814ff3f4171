"""
Intensity Distribution Targets: Easy/moderate/hard split from volume and frequency.

Based on:
- Seiler, S. (2010). What is best practice for training intensity distribution?
- Muñoz et al. (2014). Does polarized training improve performance in
  recreational runners?
- Stöggl & Sperlich (2014). Polarized training has greater impact on key
  endurance variables than threshold, high intensity, or high volume training

The 80/20 rule is an asymptote that athletes approach as volume increases.
Below roughly 6 hours per week, stimulus density matters more than strict
polarization, so the target split depends on weekly hours. Two frequency
gates then adjust the volume-only answer:

    Gate A: many short sessions (> 5/week, < 6 h) -> force polarized
    Gate B: few sessions (<= 3/week) -> allow pyramidal at moderate/high volume
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple
import logging

from .config import FLOAT_TOLERANCE

logger = logging.getLogger(__name__)


class IntensityMethodology(Enum):
    """Training intensity distribution philosophy."""
    POLARIZED = "POLARIZED"                   # 80/20, little threshold work
    THRESHOLD_FOCUSED = "THRESHOLD_FOCUSED"   # More tempo for hybrid sports
    PYRAMIDAL = "PYRAMIDAL"                   # Easy > moderate > hard
    BALANCED = "BALANCED"                     # General fitness
    HIGH_INTENSITY = "HIGH_INTENSITY"         # Very low volume (< 3 h)
    CUSTOM = "CUSTOM"                         # User-defined


class VolumeCategory(Enum):
    """Weekly training volume bins."""
    VERY_LOW = "VERY_LOW"     # < 3 h
    LOW = "LOW"               # 3-5 h
    MODERATE = "MODERATE"     # 5-9 h
    HIGH = "HIGH"             # 9-15 h
    VERY_HIGH = "VERY_HIGH"   # > 15 h


class FrequencyCategory(Enum):
    """Sessions-per-week bins."""
    LOW = "LOW"               # <= 3
    MODERATE = "MODERATE"     # 4-5
    HIGH = "HIGH"             # > 5


class TargetStatus(Enum):
    """How close an actual zone percentage is to its target."""
    ON_TARGET = "ON_TARGET"   # within 5 points
    CLOSE = "CLOSE"           # within 15 points
    OFF_TARGET = "OFF_TARGET"


@dataclass(frozen=True)
class IntensityTargets:
    """
    Target share of training time per intensity zone.

    easy: below LT1, moderate: LT1 to LT2, hard: above LT2.
    The three percentages sum to 100.
    """
    easy_percent: float
    moderate_percent: float
    hard_percent: float
    methodology: IntensityMethodology = IntensityMethodology.CUSTOM
    label: str = ""

    @property
    def total(self) -> float:
        return self.easy_percent + self.moderate_percent + self.hard_percent

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.easy_percent, self.moderate_percent, self.hard_percent)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'easy_percent': self.easy_percent,
            'moderate_percent': self.moderate_percent,
            'hard_percent': self.hard_percent,
            'methodology': self.methodology.value,
            'label': self.label,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'IntensityTargets':
        """Create targets from dictionary."""
        return cls(
            easy_percent=float(d['easy_percent']),
            moderate_percent=float(d['moderate_percent']),
            hard_percent=float(d['hard_percent']),
            methodology=IntensityMethodology(d.get('methodology', 'CUSTOM')),
            label=d.get('label', 'Custom'),
        )


# Volume-adjusted distributions (hours per week)
VOLUME_ADJUSTED_TARGETS = {
    VolumeCategory.VERY_LOW: IntensityTargets(
        30, 20, 50, IntensityMethodology.HIGH_INTENSITY, "High intensity (<3h)"),
    VolumeCategory.LOW: IntensityTargets(
        70, 20, 10, IntensityMethodology.PYRAMIDAL, "Pyramidal (3-5h)"),
    VolumeCategory.MODERATE: IntensityTargets(
        80, 5, 15, IntensityMethodology.POLARIZED, "Polarized (5-9h)"),
    VolumeCategory.HIGH: IntensityTargets(
        85, 5, 10, IntensityMethodology.POLARIZED, "Polarized (9-15h)"),
    VolumeCategory.VERY_HIGH: IntensityTargets(
        90, 5, 5, IntensityMethodology.POLARIZED, "Advanced polarized (>15h)"),
}

# Upper bounds (exclusive) of each volume bin in hours
VOLUME_THRESHOLDS = [
    (3.0, VolumeCategory.VERY_LOW),
    (5.0, VolumeCategory.LOW),
    (9.0, VolumeCategory.MODERATE),
    (15.0, VolumeCategory.HIGH),
]

METHODOLOGY_PRESETS = {
    IntensityMethodology.POLARIZED: IntensityTargets(
        80, 5, 15, IntensityMethodology.POLARIZED, "80/20 Polarized"),
    IntensityMethodology.THRESHOLD_FOCUSED: IntensityTargets(
        60, 25, 15, IntensityMethodology.THRESHOLD_FOCUSED, "Threshold focused"),
    IntensityMethodology.PYRAMIDAL: IntensityTargets(
        70, 20, 10, IntensityMethodology.PYRAMIDAL, "Pyramidal"),
    IntensityMethodology.BALANCED: IntensityTargets(
        55, 25, 20, IntensityMethodology.BALANCED, "Balanced"),
    IntensityMethodology.HIGH_INTENSITY: IntensityTargets(
        30, 20, 50, IntensityMethodology.HIGH_INTENSITY, "High intensity"),
    IntensityMethodology.CUSTOM: IntensityTargets(
        70, 15, 15, IntensityMethodology.CUSTOM, "Custom"),
}

_POLARIZED = (80, 5, 15, IntensityMethodology.POLARIZED, "80/20 Polarized")
_TEAM = (65, 20, 15, IntensityMethodology.PYRAMIDAL)
_RACKET = (65, 20, 15, IntensityMethodology.BALANCED)

SPORT_DEFAULTS = {
    'RUNNING': IntensityTargets(*_POLARIZED),
    'CYCLING': IntensityTargets(*_POLARIZED),
    'SKIING': IntensityTargets(*_POLARIZED),
    'SWIMMING': IntensityTargets(*_POLARIZED),
    'TRIATHLON': IntensityTargets(75, 10, 15, IntensityMethodology.POLARIZED, "75/25 Triathlon"),
    'HYROX': IntensityTargets(60, 25, 15, IntensityMethodology.THRESHOLD_FOCUSED, "HYROX hybrid"),
    'FUNCTIONAL_FITNESS': IntensityTargets(55, 25, 20, IntensityMethodology.BALANCED, "Functional balanced"),
    'GENERAL_FITNESS': IntensityTargets(55, 25, 20, IntensityMethodology.BALANCED, "General fitness"),
    'STRENGTH': IntensityTargets(50, 30, 20, IntensityMethodology.BALANCED, "Strength"),
    'TEAM_FOOTBALL': IntensityTargets(*_TEAM, "Football"),
    'TEAM_ICE_HOCKEY': IntensityTargets(*_TEAM, "Ice hockey"),
    'TEAM_HANDBALL': IntensityTargets(*_TEAM, "Handball"),
    'TEAM_FLOORBALL': IntensityTargets(*_TEAM, "Floorball"),
    'TEAM_BASKETBALL': IntensityTargets(*_TEAM, "Basketball"),
    'TEAM_VOLLEYBALL': IntensityTargets(*_TEAM, "Volleyball"),
    'TENNIS': IntensityTargets(*_RACKET, "Tennis"),
    'PADEL': IntensityTargets(*_RACKET, "Padel"),
}


def categorize_volume(weekly_hours: float) -> VolumeCategory:
    """Bin weekly training hours into a volume category."""
    if weekly_hours < 0:
        raise ValueError(f"Weekly hours cannot be negative: {weekly_hours}")

    for upper, category in VOLUME_THRESHOLDS:
        if weekly_hours < upper:
            return category
    return VolumeCategory.VERY_HIGH


def categorize_frequency(sessions_per_week: int) -> FrequencyCategory:
    """Bin sessions per week into a frequency category."""
    if sessions_per_week < 0:
        raise ValueError(f"Sessions per week cannot be negative: {sessions_per_week}")

    if sessions_per_week <= 3:
        return FrequencyCategory.LOW
    elif sessions_per_week <= 5:
        return FrequencyCategory.MODERATE
    return FrequencyCategory.HIGH


def validate_targets(targets: IntensityTargets, tolerance: float = FLOAT_TOLERANCE) -> bool:
    """Check that no component is negative and the sum is 100 within tolerance."""
    if min(targets.as_tuple()) < 0:
        return False
    return abs(targets.total - 100.0) <= tolerance


def normalize_targets(targets: IntensityTargets, decimals: int = 1) -> IntensityTargets:
    """
    Rescale targets proportionally so they sum to exactly 100.

    Components are rounded to the given number of decimals and the rounding
    remainder is added to the largest component.

    Raises:
        ValueError: If any component is negative or all are zero
    """
    values = targets.as_tuple()
    if min(values) < 0:
        raise ValueError(f"Intensity percentages cannot be negative: {values}")

    total = sum(values)
    if total <= 0:
        raise ValueError("Intensity percentages must not all be zero")

    scaled = [round(v * 100.0 / total, decimals) for v in values]
    largest = scaled.index(max(scaled))
    scaled[largest] = round(scaled[largest] + (100.0 - sum(scaled)), decimals)

    return replace(
        targets,
        easy_percent=scaled[0],
        moderate_percent=scaled[1],
        hard_percent=scaled[2],
    )


def resolve_intensity_targets(
    weekly_hours: float,
    sessions_per_week: int,
    custom_targets: Optional[IntensityTargets] = None
) -> IntensityTargets:
    """
    Map weekly volume and frequency to target intensity distribution.

    Priority:
        1. Custom targets (normalized to 100)
        2. Gate A: HIGH frequency and < 6 h -> polarized (MODERATE entry)
        3. Gate B: LOW frequency -> pyramidal at MODERATE/HIGH volume,
           high intensity at VERY_LOW volume
        4. Volume table

    Args:
        weekly_hours: Average training hours per week
        sessions_per_week: Training sessions per week
        custom_targets: Explicit user targets

    Returns:
        IntensityTargets summing to 100
    """
    if custom_targets is not None:
        targets = custom_targets
        if not validate_targets(targets):
            logger.debug("Normalizing custom targets %s", targets.as_tuple())
            targets = normalize_targets(targets)
        return targets

    volume = categorize_volume(weekly_hours)
    frequency = categorize_frequency(sessions_per_week)

    if frequency == FrequencyCategory.HIGH and weekly_hours < 6:
        targets = replace(
            VOLUME_ADJUSTED_TARGETS[VolumeCategory.MODERATE],
            label="Polarized (high frequency)"
        )
    elif frequency == FrequencyCategory.LOW and volume in (
            VolumeCategory.MODERATE, VolumeCategory.HIGH):
        targets = replace(
            VOLUME_ADJUSTED_TARGETS[VolumeCategory.LOW],
            label="Pyramidal (low frequency)"
        )
    else:
        # Gate B at VERY_LOW volume resolves to the table entry as well
        targets = VOLUME_ADJUSTED_TARGETS[volume]

    if not validate_targets(targets):
        targets = normalize_targets(targets)

    return targets


def get_methodology_targets(methodology: IntensityMethodology) -> IntensityTargets:
    """Preset targets for a named methodology."""
    return METHODOLOGY_PRESETS[methodology]


def get_sport_targets(sport: str) -> IntensityTargets:
    """Default targets for a sport, falling back to running."""
    return SPORT_DEFAULTS.get(sport.upper(), SPORT_DEFAULTS['RUNNING'])


def is_within_target(actual: float, target: float, tolerance: float = 10.0) -> bool:
    """Check whether an actual percentage lies within tolerance of the target."""
    return abs(actual - target) <= tolerance


def get_target_status(actual: float, target: float) -> TargetStatus:
    """Classify the deviation of an actual percentage from its target."""
    diff = abs(actual - target)
    if diff <= 5:
        return TargetStatus.ON_TARGET
    elif diff <= 15:
        return TargetStatus.CLOSE
    return TargetStatus.OFF_TARGET


def compare_to_targets(
    easy_minutes: float,
    moderate_minutes: float,
    hard_minutes: float,
    targets: IntensityTargets
) -> Dict[str, Any]:
    """
    Compare an actual week of training with target percentages.

    Args:
        easy_minutes: Time below LT1
        moderate_minutes: Time between LT1 and LT2
        hard_minutes: Time above LT2
        targets: Target distribution

    Returns:
        Dictionary with actual percentages, per-zone deviation and status,
        and advice strings
    """
    total = easy_minutes + moderate_minutes + hard_minutes
    if total <= 0:
        return {
            'actual': None,
            'zones': {},
            'advice': ["No training time recorded"],
        }

    actual = {
        'easy': easy_minutes / total * 100,
        'moderate': moderate_minutes / total * 100,
        'hard': hard_minutes / total * 100,
    }
    target = {
        'easy': targets.easy_percent,
        'moderate': targets.moderate_percent,
        'hard': targets.hard_percent,
    }

    zones = {}
    for zone in ('easy', 'moderate', 'hard'):
        zones[zone] = {
            'actual': round(actual[zone], 1),
            'target': target[zone],
            'deviation': round(actual[zone] - target[zone], 1),
            'status': get_target_status(actual[zone], target[zone]),
        }

    advice = []
    if actual['easy'] < target['easy'] - 5:
        advice.append(
            f"Easy share {actual['easy']:.0f}% is below the {target['easy']:.0f}% "
            f"target; slow down easy sessions"
        )
    if actual['moderate'] > target['moderate'] + 10:
        advice.append(
            f"Moderate share {actual['moderate']:.0f}% is well above target; "
            f"avoid drifting into the middle zone"
        )
    if actual['hard'] > target['hard'] + 5:
        advice.append("Too much hard training for this week's volume")

    return {
        'actual': {k: round(v, 1) for k, v in actual.items()},
        'zones': zones,
        'advice': advice,
    }


def recommend_targets(
    sport: str,
    weekly_hours: float,
    sessions_per_week: int = 4,
    custom_targets: Optional[IntensityTargets] = None
) -> Dict[str, Any]:
    """
    Compare active targets (custom or sport default) with the volume-based
    recommendation.

    Returns:
        Dictionary with active targets, recommendation, match flag, volume
        category and advice (None when they match)
    """
    active = custom_targets or get_sport_targets(sport)
    recommendation = resolve_intensity_targets(weekly_hours, sessions_per_week)
    volume = categorize_volume(weekly_hours)

    matches = abs(active.easy_percent - recommendation.easy_percent) <= 15

    advice = None
    if not matches:
        if weekly_hours < 5 and active.easy_percent > 70:
            advice = (
                f"At {weekly_hours:.1f} h/week more intensity helps; "
                f"pyramidal (70/20/10) is recommended"
            )
        elif weekly_hours >= 9 and active.easy_percent < 80:
            advice = (
                f"At {weekly_hours:.1f} h/week polarize more (80-90% easy) "
                f"to protect recovery"
            )

    return {
        'active_targets': active,
        'volume_recommendation': recommendation,
        'matches_recommendation': matches,
        'volume_category': volume,
        'advice': advice,
    }


if __name__ == '__main__':
    print("Intensity Target Examples")
    print("=" * 50)

    cases: List[Tuple[float, int]] = [(2.5, 3), (4, 4), (5, 7), (7, 3), (8, 5), (12, 6), (18, 10)]
    for hours, sessions in cases:
        t = resolve_intensity_targets(hours, sessions)
        print(f"  {hours:>4.1f} h, {sessions:>2} sessions -> "
              f"{t.easy_percent:.0f}/{t.moderate_percent:.0f}/{t.hard_percent:.0f} ({t.label})")
