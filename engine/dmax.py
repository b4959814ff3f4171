"""
D-max Lactate Thresholds: Aerobic (LT1) and anaerobic (LT2) break-points.

Based on:
- Cheng et al. (1992). A new approach for the determination of ventilatory
  and lactate thresholds (D-max)
- Bishop et al. (1998). Modified D-max with a baseline-rise start point
- Heck et al. (1985). Fixed 4 mmol/L onset of blood lactate accumulation

A cubic polynomial is fitted to staged lactate-vs-intensity data. LT2 is
the intensity where the fitted curve lies furthest (perpendicular distance)
from a baseline chord. LT1 is the first intensity below LT2 where the
curve departs from resting lactate by more than the noise band.

When the cubic fits poorly the fixed 4 mmol/L method is used instead and
confidence is reported as LOW.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence, Tuple
import logging
import math
import numpy as np

from .config import EngineParams
from .confidence import ConfidenceLevel
from .curve_fitting import (
    CubicFit,
    polynomial_regression_3,
    find_max_perpendicular_distance,
    interpolate_linear,
)

logger = logging.getLogger(__name__)


class ThresholdMethod(Enum):
    """How a threshold intensity was located."""
    DMAX = "DMAX"                     # Chord from first to last stage
    MOD_DMAX = "MOD_DMAX"             # Chord from the stage before the first rise
    BASELINE_RISE = "BASELINE_RISE"   # First departure above baseline + 0.4
    FIXED_4MMOL = "FIXED_4MMOL"       # Poor fit fallback (OBLA)


@dataclass(frozen=True)
class LactateStage:
    """One step of an incremental test."""
    intensity: float                    # Speed (km/h), power (W) or pace
    lactate: float                      # mmol/L
    heart_rate: Optional[float] = None  # bpm


@dataclass(frozen=True)
class Threshold:
    """A located threshold on the lactate curve."""
    intensity: float
    lactate: float
    heart_rate: Optional[int]
    method: ThresholdMethod

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'intensity': self.intensity,
            'lactate': self.lactate,
            'heart_rate': self.heart_rate,
            'method': self.method.value,
        }


@dataclass
class LactateCurveResult:
    """
    Complete lactate curve analysis.

    Holds the cubic coefficients, the fit quality and both thresholds.
    """
    coefficients: CubicFit
    r2: float
    lt2: Threshold
    lt1: Optional[Threshold] = None
    confidence: ConfidenceLevel = ConfidenceLevel.MEDIUM
    max_distance: float = 0.0
    relative_distance: float = 0.0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'coefficients': self.coefficients.to_dict(),
            'r2': self.r2,
            'lt1': self.lt1.to_dict() if self.lt1 else None,
            'lt2': self.lt2.to_dict(),
            'confidence': self.confidence.value,
            'max_distance': self.max_distance,
            'relative_distance': self.relative_distance,
            'warnings': list(self.warnings),
        }


def validate_stages(stages: Sequence[LactateStage], params: EngineParams) -> None:
    """
    Check the input contract for a lactate curve fit.

    Raises:
        ValueError: Too few stages, non-increasing intensity or
            negative lactate
    """
    if len(stages) < params.dmax_min_stages:
        raise ValueError(
            f"D-max requires at least {params.dmax_min_stages} stages, "
            f"got {len(stages)}"
        )

    for prev, curr in zip(stages, stages[1:]):
        if curr.intensity <= prev.intensity:
            raise ValueError(
                f"Stage intensities must be strictly increasing "
                f"({prev.intensity} then {curr.intensity})"
            )

    negative = [s.lactate for s in stages if s.lactate < 0]
    if negative:
        raise ValueError(f"Lactate values cannot be negative: {negative}")


def count_lactate_drops(stages: Sequence[LactateStage], tolerance: float = 0.2) -> int:
    """Count stage-to-stage lactate decreases larger than the tolerance."""
    return sum(
        1 for prev, curr in zip(stages, stages[1:])
        if prev.lactate - curr.lactate > tolerance
    )


def calculate_baseline_lactate(lactates: Sequence[float]) -> float:
    """
    Robust resting lactate level.

    Trimmed mean of the first 40% of values (minimum 2) with the highest
    of those values excluded.
    """
    count = max(2, int(math.floor(len(lactates) * 0.4)))
    trimmed = sorted(lactates[:count])[:-1]
    return float(np.mean(trimmed))


def find_modified_start_index(lactates: Sequence[float], rise: float = 0.4) -> int:
    """
    Index of the stage that starts the modified D-max chord.

    The chord starts at the stage before the first value at or above
    baseline + rise. A rise on the very first stage starts at 0; no rise at
    all starts at the middle stage.
    """
    baseline = calculate_baseline_lactate(lactates)

    for i, value in enumerate(lactates):
        if value >= baseline + rise:
            return max(i - 1, 0)

    logger.warning(
        "No lactate rise above baseline %.2f + %.1f; using midpoint start",
        baseline, rise
    )
    return len(lactates) // 2


def heart_rate_at(stages: Sequence[LactateStage], intensity: float) -> Optional[int]:
    """Interpolate heart rate at an intensity from the stages that carry HR."""
    with_hr = [s for s in stages if s.heart_rate is not None]
    if not with_hr:
        return None
    if len(with_hr) == 1:
        return int(round(with_hr[0].heart_rate))

    hr = interpolate_linear(
        intensity,
        [s.intensity for s in with_hr],
        [s.heart_rate for s in with_hr]
    )
    return int(round(hr))


def intensity_at_lactate(
    stages: Sequence[LactateStage],
    target: float
) -> Optional[float]:
    """
    Intensity where measured lactate first crosses the target.

    Linear interpolation between the two stages that bracket the first
    upward crossing. Returns None when the target is never crossed from
    below.
    """
    for prev, curr in zip(stages, stages[1:]):
        if prev.lactate < target <= curr.lactate:
            ratio = (target - prev.lactate) / (curr.lactate - prev.lactate)
            return prev.intensity + ratio * (curr.intensity - prev.intensity)
    return None


def classify_fit_confidence(
    r_squared: float,
    max_distance: float,
    lactate_range: float,
    params: EngineParams
) -> Tuple[ConfidenceLevel, float]:
    """
    Grade a D-max result from fit quality and curve shape.

    A well fitted but nearly linear curve has no clear break-point, so a
    small maximum distance relative to the lactate range lowers confidence.

    Returns:
        Tuple of (confidence, relative distance)
    """
    relative = max_distance / lactate_range if lactate_range > 0 else 0.0

    if r_squared < params.dmax_fallback_r_squared:
        return ConfidenceLevel.LOW, relative
    if relative < params.dmax_low_relative_distance:
        return ConfidenceLevel.LOW, relative
    if (r_squared >= params.dmax_high_r_squared
            and relative >= params.dmax_high_relative_distance):
        return ConfidenceLevel.HIGH, relative
    return ConfidenceLevel.MEDIUM, relative


def _locate_dmax(
    stages: Sequence[LactateStage],
    fit: CubicFit,
    start_index: int,
    params: EngineParams
) -> Tuple[float, float]:
    """D-max search along the chord from stages[start_index] to the last stage."""
    first = stages[start_index]
    last = stages[-1]
    slope = (last.lactate - first.lactate) / (last.intensity - first.intensity)
    intercept = first.lactate - slope * first.intensity

    return find_max_perpendicular_distance(
        fit,
        first.intensity,
        last.intensity,
        n_points=params.dmax_grid_points,
        baseline=(slope, intercept)
    )


def _round_inside(value: float, low: float, high: float, digits: int = 2) -> float:
    """Round for reporting unless rounding would land on an interval end."""
    rounded = round(value, digits)
    return rounded if low < rounded < high else value


def calculate_dmax(
    stages: Sequence[LactateStage],
    params: Optional[EngineParams] = None,
    modified: bool = False
) -> Tuple[Threshold, Dict[str, Any]]:
    """
    Locate LT2 by maximum perpendicular distance from a baseline chord.

    Algorithm:
        1. Fit lactate = a*x^3 + b*x^2 + c*x + d over all stages
        2. Baseline = chord from the first (or modified start) stage to the
           last stage
        3. Sample the curve between the chord ends and take the point of
           maximum perpendicular distance
        4. If R² < 0.90, use the 4 mmol/L crossing instead

    Args:
        stages: Incremental test stages with strictly increasing intensity
        params: Engine parameters
        modified: Use the Bishop modified start point

    Returns:
        Tuple of (LT2 threshold, breakdown dict with fit, r2, confidence,
        distances and warnings)

    Raises:
        ValueError: If the stage sequence violates the input contract
    """
    if params is None:
        params = EngineParams()

    validate_stages(stages, params)
    warnings = []

    drops = count_lactate_drops(stages, params.max_lactate_drop)
    if drops > 1:
        message = (
            f"Lactate decreased by more than {params.max_lactate_drop} mmol/L "
            f"at {drops} stages; threshold estimate is less certain"
        )
        logger.warning(message)
        warnings.append(message)

    fit = polynomial_regression_3([(s.intensity, s.lactate) for s in stages])
    lactates = [s.lactate for s in stages]
    lactate_range = max(lactates) - min(lactates)

    start_index = 0
    if modified:
        start_index = find_modified_start_index(lactates, params.dmax_lt1_rise)
    method = ThresholdMethod.MOD_DMAX if modified else ThresholdMethod.DMAX

    intensity, distance = _locate_dmax(stages, fit, start_index, params)
    confidence, relative = classify_fit_confidence(
        fit.r_squared, distance, lactate_range, params
    )
    lactate = float(fit.evaluate(intensity))

    if fit.r_squared < params.dmax_fallback_r_squared:
        fallback = intensity_at_lactate(stages, params.dmax_fallback_lactate)
        if fallback is not None and stages[0].intensity < fallback < stages[-1].intensity:
            message = (
                f"Poor polynomial fit (R²={fit.r_squared:.2f}). Using "
                f"{params.dmax_fallback_lactate} mmol/L threshold instead."
            )
            intensity = fallback
            lactate = params.dmax_fallback_lactate
            method = ThresholdMethod.FIXED_4MMOL
            distance = 0.0
            relative = 0.0
        else:
            message = (
                f"Poor polynomial fit (R²={fit.r_squared:.2f}) and lactate never "
                f"crosses {params.dmax_fallback_lactate} mmol/L; keeping D-max estimate"
            )
        logger.warning(message)
        warnings.append(message)
        confidence = ConfidenceLevel.LOW

    if drops > 1:
        confidence = confidence.downgrade()

    logger.debug(
        "D-max (%s): intensity=%.2f lactate=%.2f distance=%.4f r2=%.4f",
        method.value, intensity, lactate, distance, fit.r_squared
    )

    threshold = Threshold(
        intensity=_round_inside(intensity, stages[0].intensity, stages[-1].intensity),
        lactate=round(lactate, 2),
        heart_rate=heart_rate_at(stages, intensity),
        method=method,
    )

    breakdown = {
        'fit': fit,
        'r_squared': round(fit.r_squared, 4),
        'confidence': confidence,
        'max_distance': round(distance, 4),
        'relative_distance': round(relative, 4),
        'start_index': start_index,
        'lactate_drops': drops,
        'warnings': warnings,
    }

    return threshold, breakdown


def calculate_modified_dmax(
    stages: Sequence[LactateStage],
    params: Optional[EngineParams] = None
) -> Tuple[Threshold, Dict[str, Any]]:
    """Bishop modified D-max. See calculate_dmax."""
    return calculate_dmax(stages, params, modified=True)


def find_lt1(
    stages: Sequence[LactateStage],
    fit: CubicFit,
    lt2_intensity: float,
    params: Optional[EngineParams] = None
) -> Optional[Threshold]:
    """
    Locate the aerobic threshold below LT2.

    LT1 is the first intensity on the fitted curve where lactate exceeds the
    resting baseline by the rise criterion (0.4 mmol/L). If the curve already
    sits above that level at the lowest stage, or never reaches it before
    LT2, the D-max of the sub-curve between the first stage and LT2 is used.

    Args:
        stages: Incremental test stages
        fit: Cubic fitted to all stages
        lt2_intensity: Intensity of the anaerobic threshold
        params: Engine parameters

    Returns:
        LT1 threshold, or None when LT2 is at the first stage
    """
    if params is None:
        params = EngineParams()

    x_start = stages[0].intensity
    if lt2_intensity <= x_start:
        return None

    baseline = calculate_baseline_lactate([s.lactate for s in stages])
    target = baseline + params.dmax_lt1_rise

    grid = np.linspace(x_start, lt2_intensity, params.dmax_grid_points + 2)[1:-1]
    above = np.nonzero(fit.evaluate(grid) >= target)[0]

    if len(above) > 0 and above[0] > 0:
        intensity = float(grid[above[0]])
        method = ThresholdMethod.BASELINE_RISE
    else:
        intensity, _ = find_max_perpendicular_distance(
            fit, x_start, lt2_intensity, n_points=params.dmax_grid_points
        )
        method = ThresholdMethod.DMAX

    return Threshold(
        intensity=round(intensity, 2),
        lactate=round(float(fit.evaluate(intensity)), 2),
        heart_rate=heart_rate_at(stages, intensity),
        method=method,
    )


def fit_lactate_curve(
    stages: Sequence[LactateStage],
    params: Optional[EngineParams] = None,
    modified: bool = False
) -> LactateCurveResult:
    """
    Fit a lactate curve and locate both thresholds.

    Args:
        stages: Incremental test stages (at least 4, increasing intensity)
        params: Engine parameters
        modified: Use the Bishop modified D-max for LT2

    Returns:
        LactateCurveResult with coefficients, r2, LT1, LT2 and confidence
    """
    if params is None:
        params = EngineParams()

    lt2, breakdown = calculate_dmax(stages, params, modified=modified)
    fit = breakdown['fit']
    warnings = list(breakdown['warnings'])

    if lt2.method == ThresholdMethod.FIXED_4MMOL:
        lt1_intensity = intensity_at_lactate(
            stages,
            calculate_baseline_lactate([s.lactate for s in stages]) + params.dmax_lt1_rise
        )
        lt1 = None
        if lt1_intensity is not None and lt1_intensity < lt2.intensity:
            lt1 = Threshold(
                intensity=round(lt1_intensity, 2),
                lactate=round(float(np.interp(
                    lt1_intensity,
                    [s.intensity for s in stages],
                    [s.lactate for s in stages]
                )), 2),
                heart_rate=heart_rate_at(stages, lt1_intensity),
                method=ThresholdMethod.BASELINE_RISE,
            )
    else:
        lt1 = find_lt1(stages, fit, lt2.intensity, params)

    if lt1 is None:
        warnings.append("Aerobic threshold could not be located below LT2")

    return LactateCurveResult(
        coefficients=fit,
        r2=breakdown['r_squared'],
        lt2=lt2,
        lt1=lt1,
        confidence=breakdown['confidence'],
        max_distance=breakdown['max_distance'],
        relative_distance=breakdown['relative_distance'],
        warnings=warnings,
    )


if __name__ == '__main__':
    print("D-max Lactate Threshold Examples")
    print("=" * 50)

    test = [
        LactateStage(10, 1.1, 128),
        LactateStage(11, 1.2, 136),
        LactateStage(12, 1.4, 144),
        LactateStage(13, 1.9, 152),
        LactateStage(14, 2.8, 160),
        LactateStage(15, 4.4, 168),
        LactateStage(16, 7.0, 176),
    ]

    for use_modified in (False, True):
        result = fit_lactate_curve(test, modified=use_modified)
        print(f"\n{result.lt2.method.value}: R²={result.r2:.4f}, "
              f"confidence={result.confidence.value}")
        print(f"  LT1: {result.lt1.intensity} km/h @ {result.lt1.lactate} mmol/L, "
              f"{result.lt1.heart_rate} bpm ({result.lt1.method.value})")
        print(f"  LT2: {result.lt2.intensity} km/h @ {result.lt2.lactate} mmol/L, "
              f"{result.lt2.heart_rate} bpm")
