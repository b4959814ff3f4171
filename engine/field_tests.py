"""
Field Test Analyzers: Threshold estimates from protocol-specific test data.

Based on:
- Friel, J. (2009). 30-minute time trial for lactate threshold heart rate
- Allen & Coggan (2010). 20-minute test, 95% rule
- Maffetone, P. / Uphill Athlete. Aerobic (HR drift) test
- Monod & Scherrer (1965); Hughson et al. (1984). Critical velocity
- Daniels, J. (2014). Race-based threshold pace equivalents

Each protocol consumes its own measurement shape and produces a
FieldTestResult. Missing optional measurements (splits, HR series, athlete
level) are synthesized by explicit default-filling functions that report
what they assumed, and every assumption lowers the confidence score.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence, Tuple, Union
import logging
import numpy as np
from scipy import stats

from .config import EngineParams
from .confidence import ConfidenceLevel, score_to_confidence
from .curve_fitting import linear_regression
from .field_test_results import (
    FieldTestType,
    FieldTestResult,
    FieldTestValidationError,
    ThresholdEstimate,
    ValidationSummary,
)

logger = logging.getLogger(__name__)


class PacingQuality(Enum):
    """Evenness of split speeds (coefficient of variation)."""
    EXCELLENT = "EXCELLENT"   # CV < 2%
    GOOD = "GOOD"             # CV < 4%
    FAIR = "FAIR"             # CV < 6%
    POOR = "POOR"             # CV >= 6%


class DriftLevel(Enum):
    """HR drift over a time trial."""
    LOW = "LOW"               # < 5%
    MODERATE = "MODERATE"     # 5-10%
    HIGH = "HIGH"             # > 10%


class HRDriftAssessment(Enum):
    """Where an HR drift test pace sits relative to LT1."""
    BELOW_LT1 = "BELOW_LT1"             # < 5% drift
    ABOVE_LT1 = "ABOVE_LT1"             # 5-10%
    WELL_ABOVE_LT1 = "WELL_ABOVE_LT1"   # >= 10%


class RaceDistance(Enum):
    """Race distances usable for threshold estimation."""
    FIVE_K = "FIVE_K"
    TEN_K = "TEN_K"
    HALF_MARATHON = "HALF_MARATHON"
    MARATHON = "MARATHON"


class AthleteLevel(Enum):
    """Training status, used to tune long-race corrections."""
    RECREATIONAL = "RECREATIONAL"
    TRAINED = "TRAINED"
    ELITE = "ELITE"


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol constants
# ═══════════════════════════════════════════════════════════════════════════════

HR_DRIFT_INTERPRETATION = {
    HRDriftAssessment.BELOW_LT1: "below LT1, suitable for easy pace",
    HRDriftAssessment.ABOVE_LT1: "above LT1, slow down for aerobic work",
    HRDriftAssessment.WELL_ABOVE_LT1: "significant drift, reduce pace",
}

RACE_DISTANCE_KM = {
    RaceDistance.FIVE_K: 5.0,
    RaceDistance.TEN_K: 10.0,
    RaceDistance.HALF_MARATHON: 21.0975,
    RaceDistance.MARATHON: 42.195,
}

# LT2 pace = race pace * factor (> 1 means LT2 is slower than race pace)
RACE_PACE_FACTORS = {
    RaceDistance.FIVE_K: 1.06,
    RaceDistance.TEN_K: 1.03,
    RaceDistance.HALF_MARATHON: 0.97,
    RaceDistance.MARATHON: 0.93,
}

# Long races depend on how close to threshold the athlete can race
LEVEL_FACTOR_ADJUSTMENT = {
    RaceDistance.HALF_MARATHON: {
        AthleteLevel.RECREATIONAL: -0.03,
        AthleteLevel.TRAINED: 0.0,
        AthleteLevel.ELITE: 0.02,
    },
    RaceDistance.MARATHON: {
        AthleteLevel.RECREATIONAL: -0.04,
        AthleteLevel.TRAINED: 0.0,
        AthleteLevel.ELITE: 0.03,
    },
}

# LT2 HR = race average HR * factor
RACE_HR_FACTORS = {
    RaceDistance.FIVE_K: 0.94,
    RaceDistance.TEN_K: 0.97,
    RaceDistance.HALF_MARATHON: 1.00,
    RaceDistance.MARATHON: 1.05,
}

# Plausible finish times in seconds
RACE_TIME_BOUNDS = {
    RaceDistance.FIVE_K: (720, 3600),
    RaceDistance.TEN_K: (1560, 7200),
    RaceDistance.HALF_MARATHON: (3480, 14400),
    RaceDistance.MARATHON: (7200, 25200),
}

TWENTY_MIN_PACE_FACTOR = 1.05
TWENTY_MIN_HR_FACTOR = 0.95
ASSUMED_FIELD_PENALTY = 10


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class EnvironmentalConditions:
    """Environmental conditions during a test."""
    temperature_c: Optional[float] = None
    wind: Optional[str] = None        # "none", "light", "moderate", "strong"
    surface: Optional[str] = None     # "track", "road", "trail", "treadmill"


@dataclass(frozen=True)
class ThirtyMinuteTTInput:
    distance_m: float
    average_hr: float
    duration_sec: float = 1800.0
    max_hr: Optional[float] = None
    split_5min_m: Optional[Tuple[float, ...]] = None
    hr_series: Optional[Tuple[float, ...]] = None
    hr_sample_interval_sec: float = 1.0
    conditions: Optional[EnvironmentalConditions] = None


@dataclass(frozen=True)
class HRDriftInput:
    duration_min: float
    pace_sec_per_km: float
    first_half_hr: float
    second_half_hr: float
    hr_series: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class CriticalVelocityTrial:
    distance_m: float
    time_sec: float


@dataclass(frozen=True)
class CriticalVelocityInput:
    trials: Tuple[CriticalVelocityTrial, ...]


@dataclass(frozen=True)
class TwentyMinuteTTInput:
    distance_m: float
    average_hr: float
    duration_sec: float = 1200.0
    split_5min_m: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class RaceInput:
    distance: RaceDistance
    finish_time_sec: float
    average_hr: Optional[float] = None
    athlete_level: Optional[AthleteLevel] = None


FieldTestInput = Union[
    ThirtyMinuteTTInput,
    HRDriftInput,
    CriticalVelocityInput,
    TwentyMinuteTTInput,
    RaceInput,
]


# ═══════════════════════════════════════════════════════════════════════════════
# Input validation
# ═══════════════════════════════════════════════════════════════════════════════

def _check_range(errors: List[str], name: str, value: Optional[float],
                 low: float, high: float, required: bool = True):
    if value is None:
        if required:
            errors.append(f"{name} is required")
        return
    if not (low <= value <= high):
        errors.append(f"{name} must be between {low:g} and {high:g} (got {value:g})")


def validate_thirty_minute_tt_input(data: ThirtyMinuteTTInput):
    """Raise FieldTestValidationError listing every schema violation."""
    errors = []
    _check_range(errors, "distance_m", data.distance_m, 4000, 12000)
    _check_range(errors, "duration_sec", data.duration_sec, 1700, 1900)
    _check_range(errors, "average_hr", data.average_hr, 120, 200)
    _check_range(errors, "max_hr", data.max_hr, 130, 220, required=False)
    if data.split_5min_m is not None:
        if len(data.split_5min_m) != 6:
            errors.append(f"split_5min_m needs 6 splits (got {len(data.split_5min_m)})")
        elif min(data.split_5min_m) <= 0:
            errors.append("split_5min_m values must be positive")
    if data.hr_series is not None and len(data.hr_series) < 2:
        errors.append("hr_series needs at least 2 samples")
    if data.hr_sample_interval_sec <= 0:
        errors.append("hr_sample_interval_sec must be positive")
    if errors:
        raise FieldTestValidationError(FieldTestType.THIRTY_MIN_TT, errors)


def validate_hr_drift_input(data: HRDriftInput):
    """Raise FieldTestValidationError listing every schema violation."""
    errors = []
    _check_range(errors, "duration_min", data.duration_min, 40, 80)
    _check_range(errors, "pace_sec_per_km", data.pace_sec_per_km, 150, 600)
    _check_range(errors, "first_half_hr", data.first_half_hr, 100, 180)
    _check_range(errors, "second_half_hr", data.second_half_hr, 100, 190)
    if data.hr_series is not None and len(data.hr_series) < 2:
        errors.append("hr_series needs at least 2 samples")
    if errors:
        raise FieldTestValidationError(FieldTestType.HR_DRIFT, errors)


def validate_critical_velocity_input(data: CriticalVelocityInput):
    """
    Raise FieldTestValidationError for schema violations.

    Non-positive distances or times are not schema errors: they are reported
    by the analyzer as invalid results.
    """
    errors = []
    if not (2 <= len(data.trials) <= 4):
        errors.append(f"Critical velocity needs 2-4 trials (got {len(data.trials)})")
    for i, trial in enumerate(data.trials, start=1):
        if trial.distance_m > 0:
            _check_range(errors, f"trial {i} distance_m", trial.distance_m, 400, 5000)
        if trial.time_sec > 0:
            _check_range(errors, f"trial {i} time_sec", trial.time_sec, 60, 2000)
    if errors:
        raise FieldTestValidationError(FieldTestType.CRITICAL_VELOCITY, errors)


def validate_twenty_minute_tt_input(data: TwentyMinuteTTInput):
    """Raise FieldTestValidationError listing every schema violation."""
    errors = []
    _check_range(errors, "distance_m", data.distance_m, 2500, 8000)
    _check_range(errors, "duration_sec", data.duration_sec, 1150, 1250)
    _check_range(errors, "average_hr", data.average_hr, 120, 200)
    if data.split_5min_m is not None:
        if len(data.split_5min_m) != 4:
            errors.append(f"split_5min_m needs 4 splits (got {len(data.split_5min_m)})")
        elif min(data.split_5min_m) <= 0:
            errors.append("split_5min_m values must be positive")
    if errors:
        raise FieldTestValidationError(FieldTestType.TWENTY_MIN_TT, errors)


def validate_race_input(data: RaceInput):
    """Raise FieldTestValidationError listing every schema violation."""
    errors = []
    low, high = RACE_TIME_BOUNDS[data.distance]
    _check_range(errors, "finish_time_sec", data.finish_time_sec, low, high)
    _check_range(errors, "average_hr", data.average_hr, 100, 210, required=False)
    if errors:
        raise FieldTestValidationError(FieldTestType.RACE_BASED, errors)


# ═══════════════════════════════════════════════════════════════════════════════
# Default filling
# ═══════════════════════════════════════════════════════════════════════════════

def fill_default_splits(
    total: float,
    count: int,
    splits: Optional[Sequence[float]] = None
) -> Tuple[List[float], bool]:
    """
    Return the given splits, or even splits when none were recorded.

    Args:
        total: Total distance covered
        count: Number of splits expected
        splits: Recorded splits, if any

    Returns:
        Tuple of (splits, assumed) where assumed is True when the splits
        were synthesized
    """
    if splits is not None:
        return list(splits), False
    return [total / count] * count, True


def fill_default_hr_series(
    average_hr: float,
    duration_sec: float,
    hr_series: Optional[Sequence[float]] = None,
    sample_interval_sec: float = 1.0
) -> Tuple[List[float], bool]:
    """
    Return the recorded HR series, or a flat series at the average HR.

    Returns:
        Tuple of (series, assumed)
    """
    if hr_series is not None:
        return list(hr_series), False
    samples = int(round(duration_sec / sample_interval_sec))
    return [float(average_hr)] * samples, True


def fill_default_athlete_level(
    level: Optional[AthleteLevel] = None
) -> Tuple[AthleteLevel, bool]:
    """Return the athlete level, assuming TRAINED when unknown."""
    if level is not None:
        return level, False
    return AthleteLevel.TRAINED, True


# ═══════════════════════════════════════════════════════════════════════════════
# Shared analysis helpers
# ═══════════════════════════════════════════════════════════════════════════════

def classify_pacing(split_distances: Sequence[float]) -> Tuple[PacingQuality, float]:
    """
    Grade pacing evenness from equal-duration split distances.

    Returns:
        Tuple of (quality, coefficient of variation in percent)
    """
    cv = float(stats.variation(np.asarray(split_distances, dtype=float))) * 100

    if cv < 2:
        return PacingQuality.EXCELLENT, cv
    elif cv < 4:
        return PacingQuality.GOOD, cv
    elif cv < 6:
        return PacingQuality.FAIR, cv
    return PacingQuality.POOR, cv


PACING_PENALTY = {
    PacingQuality.EXCELLENT: 0,
    PacingQuality.GOOD: 5,
    PacingQuality.FAIR: 15,
    PacingQuality.POOR: 30,
}


def calculate_split_ratio(split_distances: Sequence[float]) -> float:
    """
    Second-half vs first-half distance ratio.

    > 1 is a negative split (faster second half).
    """
    half = len(split_distances) // 2
    first = sum(split_distances[:half])
    second = sum(split_distances[half:2 * half])
    return second / first if first > 0 else 1.0


def calculate_drift_percent(first_half_hr: float, second_half_hr: float) -> float:
    """Cardiac drift: (second - first) / first * 100."""
    return (second_half_hr - first_half_hr) / first_half_hr * 100


def series_halves(series: Sequence[float]) -> Tuple[float, float]:
    """Mean of the first and second half of a sample series."""
    arr = np.asarray(series, dtype=float)
    half = len(arr) // 2
    return float(np.mean(arr[:half])), float(np.mean(arr[half:]))


def _finish(
    test_type: FieldTestType,
    score: float,
    validation: ValidationSummary,
    assumed: List[str],
    lt1: Optional[ThresholdEstimate] = None,
    lt2: Optional[ThresholdEstimate] = None,
    recommendations: Optional[List[str]] = None,
    metrics: Optional[Dict[str, Any]] = None,
    ceiling: ConfidenceLevel = ConfidenceLevel.VERY_HIGH
) -> FieldTestResult:
    """Apply assumption penalties and assemble the result."""
    score -= ASSUMED_FIELD_PENALTY * len(assumed)
    if assumed:
        validation.warn(f"Assumed values used for: {', '.join(assumed)}")

    confidence = score_to_confidence(score).cap(ceiling)
    if not validation.valid:
        confidence = ConfidenceLevel.LOW

    recommendations = list(recommendations or [])
    if confidence == ConfidenceLevel.LOW and validation.valid:
        recommendations.append(
            "Low confidence: repeat the test under controlled conditions before updating zones"
        )
    if not validation.valid:
        recommendations.append("Result is invalid and must not be used to set training zones")

    logger.debug("%s analyzed: score=%.0f confidence=%s valid=%s",
                 test_type.value, score, confidence.value, validation.valid)

    return FieldTestResult(
        test_type=test_type,
        confidence=confidence,
        validation=validation,
        lt1=lt1,
        lt2=lt2,
        recommendations=recommendations,
        metrics=metrics or {},
        assumed_fields=assumed,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Thirty-minute time trial
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_thirty_minute_tt(
    data: ThirtyMinuteTTInput,
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Analyze a 30-minute solo time trial.

    LT2 pace is the pace over the final 20 minutes (splits 3-6) and LT2 HR
    is the average HR over the same period.

    Args:
        data: Test measurements
        params: Engine parameters

    Returns:
        FieldTestResult with LT2 estimate
    """
    validate_thirty_minute_tt_input(data)

    validation = ValidationSummary()
    assumed = []
    recommendations = []
    score = 100.0

    splits, splits_assumed = fill_default_splits(data.distance_m, 6, data.split_5min_m)
    if splits_assumed:
        assumed.append("split_5min_m")
        recommendations.append("Record 5-minute splits to assess pacing")
    else:
        mismatch = abs(sum(splits) - data.distance_m) / data.distance_m
        if mismatch > 0.02:
            validation.warn(
                f"Splits sum to {sum(splits):.0f} m but total distance is {data.distance_m:.0f} m"
            )
            score -= 10

    hr_series, hr_assumed = fill_default_hr_series(
        data.average_hr, data.duration_sec, data.hr_series, data.hr_sample_interval_sec
    )
    if hr_assumed:
        assumed.append("hr_series")

    # Pacing
    pacing, pacing_cv = classify_pacing(splits)
    split_ratio = calculate_split_ratio(splits)
    score -= PACING_PENALTY[pacing]
    if pacing in (PacingQuality.FAIR, PacingQuality.POOR):
        validation.warn(f"Uneven pacing (CV {pacing_cv:.1f}%)")
    if split_ratio < 0.95:
        validation.warn(
            f"Positive split: second half {(1 - split_ratio) * 100:.1f}% slower than first"
        )
        recommendations.append("Start more conservatively on the next test")
        score -= 10

    # HR series coverage and drift
    series_seconds = len(hr_series) * data.hr_sample_interval_sec
    if not hr_assumed and series_seconds < data.duration_sec:
        validation.warn(
            f"HR series covers {series_seconds:.0f} s of a {data.duration_sec:.0f} s test"
        )
        score -= 15

    drift_percent = 0.0
    drift_level = DriftLevel.LOW
    if not hr_assumed:
        first_hr, second_hr = series_halves(hr_series)
        drift_percent = calculate_drift_percent(first_hr, second_hr)
        if drift_percent > 10:
            drift_level = DriftLevel.HIGH
            validation.warn(f"High HR drift ({drift_percent:.1f}%) suggests too fast a start")
            score -= 10
        elif drift_percent >= 5:
            drift_level = DriftLevel.MODERATE

    # Conditions
    if data.conditions is not None:
        if data.conditions.temperature_c is not None and data.conditions.temperature_c > 25:
            validation.warn(
                f"Hot conditions ({data.conditions.temperature_c:.0f}°C) inflate HR and slow pace"
            )
            score -= 10
        if data.conditions.wind in ("moderate", "strong"):
            validation.warn(f"{data.conditions.wind.capitalize()} wind affects pace")
            score -= 5 if data.conditions.wind == "moderate" else 10
        if data.conditions.surface == "trail":
            validation.warn("Trail surface makes pace a poor threshold reference")
            score -= 10

    # Physiological plausibility
    if data.max_hr is not None and data.average_hr > data.max_hr:
        validation.fail(
            f"Average HR {data.average_hr:.0f} exceeds max HR {data.max_hr:.0f}"
        )
    elif data.max_hr is not None and data.average_hr < 0.80 * data.max_hr:
        validation.warn("Average HR below 80% of max; effort may not have been maximal")
        score -= 15

    # Threshold: final 20 minutes
    split_duration = data.duration_sec / 6
    final_distance = sum(splits[2:])
    lt2_pace = (4 * split_duration) / (final_distance / 1000)

    if hr_assumed:
        lt2_hr = data.average_hr
    else:
        start = len(hr_series) // 3
        lt2_hr = float(np.mean(hr_series[start:]))

    lt2 = ThresholdEstimate(pace_sec_per_km=lt2_pace, heart_rate=int(round(lt2_hr)))

    metrics = {
        'average_pace_sec_per_km': round(data.duration_sec / (data.distance_m / 1000), 1),
        'pacing_quality': pacing.value,
        'pacing_cv_percent': round(pacing_cv, 2),
        'split_ratio': round(split_ratio, 3),
        'negative_split': split_ratio > 1.0,
        'hr_drift_percent': round(drift_percent, 1),
        'hr_drift_level': drift_level.value,
    }

    return _finish(FieldTestType.THIRTY_MIN_TT, score, validation, assumed,
                   lt2=lt2, recommendations=recommendations, metrics=metrics)


# ═══════════════════════════════════════════════════════════════════════════════
# HR drift
# ═══════════════════════════════════════════════════════════════════════════════

def classify_hr_drift(drift_percent: float) -> Tuple[HRDriftAssessment, str]:
    """
    Classify a drift percentage relative to LT1.

    Thresholds:
        < 5%: below LT1
        5-10%: above LT1
        >= 10%: well above LT1

    Returns:
        Tuple of (assessment, interpretation)
    """
    if drift_percent < 5:
        assessment = HRDriftAssessment.BELOW_LT1
    elif drift_percent < 10:
        assessment = HRDriftAssessment.ABOVE_LT1
    else:
        assessment = HRDriftAssessment.WELL_ABOVE_LT1
    return assessment, HR_DRIFT_INTERPRETATION[assessment]


def analyze_hr_drift(
    data: HRDriftInput,
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Analyze a steady-pace HR drift test.

    Drift below 5% means the tested pace is below LT1; the pace is then a
    lower bound for LT1 speed. Above 5% the LT1 pace estimate is slowed by
    2% for every drift point above 5 (capped at 20%).

    Args:
        data: Test measurements
        params: Engine parameters

    Returns:
        FieldTestResult with LT1 estimate
    """
    if params is None:
        params = EngineParams()

    validate_hr_drift_input(data)

    validation = ValidationSummary()
    recommendations = []
    score = 100.0

    first_hr = data.first_half_hr
    second_hr = data.second_half_hr

    if data.hr_series is not None:
        series_first, series_second = series_halves(data.hr_series)
        mismatch = max(abs(series_first - first_hr), abs(series_second - second_hr))
        if mismatch > params.hr_series_mismatch_bpm:
            validation.warn(
                f"Declared half averages differ from the HR series by {mismatch:.1f} bpm; "
                f"using the series"
            )
            score -= 10
        first_hr, second_hr = series_first, series_second
    else:
        score -= 10

    if data.duration_min < 60:
        validation.warn(
            f"Test lasted {data.duration_min:.0f} min; 60 min gives a clearer drift signal"
        )
        score -= 10

    drift = calculate_drift_percent(first_hr, second_hr)
    assessment, interpretation = classify_hr_drift(drift)

    if drift < 0:
        validation.warn("HR fell in the second half; check warm-up and pacing")
        score -= 15
    if drift > 20:
        validation.warn(f"Drift of {drift:.1f}% is implausibly high; check HR data")
        score -= 20

    if assessment == HRDriftAssessment.BELOW_LT1:
        lt1_pace = data.pace_sec_per_km
        recommendations.append(
            "Pace is below LT1; repeat slightly faster to pinpoint the threshold"
        )
    else:
        slowdown = min(0.02 * (drift - 5), 0.20)
        lt1_pace = data.pace_sec_per_km * (1 + slowdown)
        score -= 5 if assessment == HRDriftAssessment.ABOVE_LT1 else 15
        recommendations.append("Retest at the adjusted pace to confirm LT1")

    # Each drift point above 5% takes 1% off the first-half HR
    lt1_hr = first_hr * (1 - max(drift - 5, 0) / 100)
    lt1 = ThresholdEstimate(pace_sec_per_km=lt1_pace, heart_rate=int(round(lt1_hr)))

    metrics = {
        'drift_percent': round(drift, 2),
        'assessment': assessment.value,
        'interpretation': interpretation,
        'first_half_hr': round(first_hr, 1),
        'second_half_hr': round(second_hr, 1),
        'lt1_is_lower_bound': assessment == HRDriftAssessment.BELOW_LT1,
    }

    return _finish(FieldTestType.HR_DRIFT, score, validation, [],
                   lt1=lt1, recommendations=recommendations, metrics=metrics)


# ═══════════════════════════════════════════════════════════════════════════════
# Critical velocity
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_critical_velocity(
    data: CriticalVelocityInput,
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Estimate critical velocity from 2-4 maximal trials.

    Distance is regressed on time: the slope is critical velocity (m/s),
    which approximates LT2, and the intercept is D' (m), the finite
    distance that can be covered above CV.

    Args:
        data: Trials (distance, time)
        params: Engine parameters

    Returns:
        FieldTestResult with LT2 estimate
    """
    if params is None:
        params = EngineParams()

    validate_critical_velocity_input(data)

    validation = ValidationSummary()
    recommendations = []
    score = 100.0

    for i, trial in enumerate(data.trials, start=1):
        if trial.time_sec <= 0 or trial.distance_m <= 0:
            validation.fail(f"Trial {i} has non-positive distance or time")

    if not validation.valid:
        return _finish(FieldTestType.CRITICAL_VELOCITY, 0, validation, [])

    times = sorted(t.time_sec for t in data.trials)
    if len(set(times)) < len(times):
        validation.fail("Trial durations must differ")
    elif times[0] / times[-1] > params.cv_max_time_ratio:
        validation.fail(
            f"Trials too similar in duration (shortest/longest = {times[0] / times[-1]:.2f})"
        )

    fit = linear_regression([(t.time_sec, t.distance_m) for t in data.trials])
    cv = fit.slope
    d_prime = fit.intercept

    if cv <= 0:
        validation.fail(f"Critical velocity must be positive (got {cv:.2f} m/s)")
    if d_prime < 0:
        validation.fail(f"D' must not be negative (got {d_prime:.0f} m)")

    if len(data.trials) == 2:
        validation.warn("Two trials always fit perfectly; add a third trial to check the model")
        score -= 15
    elif fit.r_squared < params.cv_good_r_squared:
        validation.warn(f"Model fit R²={fit.r_squared:.3f} is below {params.cv_good_r_squared}")
        score -= 30 if fit.r_squared < 0.90 else 15

    if times[0] < 120:
        validation.warn("Shortest trial under 2 minutes overstates anaerobic contribution")
        score -= 10
    if times[-1] < 720:
        validation.warn("Longest trial under 12 minutes; CV may be overestimated")
        score -= 10

    if fit.r_squared >= 0.95:
        fit_quality = "excellent"
    elif fit.r_squared >= 0.90:
        fit_quality = "good"
    else:
        fit_quality = "add more trials"
        recommendations.append("Add another trial at a different duration")

    lt2 = None
    if validation.valid:
        lt2 = ThresholdEstimate(pace_sec_per_km=1000.0 / cv)

    metrics = {
        'critical_velocity_m_per_s': round(cv, 3),
        'd_prime_m': round(d_prime, 1),
        'r_squared': round(fit.r_squared, 4),
        'fit_quality': fit_quality,
        'trial_count': len(data.trials),
    }

    return _finish(FieldTestType.CRITICAL_VELOCITY, score, validation, [],
                   lt2=lt2, recommendations=recommendations, metrics=metrics)


# ═══════════════════════════════════════════════════════════════════════════════
# Twenty-minute time trial
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_twenty_minute_tt(
    data: TwentyMinuteTTInput,
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Analyze a 20-minute time trial.

    Twenty minutes is raced above threshold, so LT2 pace is discounted to
    105% of the test pace and LT2 HR to 95% of the test average.

    Args:
        data: Test measurements
        params: Engine parameters

    Returns:
        FieldTestResult with LT2 estimate
    """
    validate_twenty_minute_tt_input(data)

    validation = ValidationSummary()
    assumed = []
    recommendations = []
    # Discounted estimate starts below a direct measurement
    score = 90.0

    splits, splits_assumed = fill_default_splits(data.distance_m, 4, data.split_5min_m)
    if splits_assumed:
        assumed.append("split_5min_m")

    pacing, pacing_cv = classify_pacing(splits)
    spread = (max(splits) - min(splits)) / max(splits) * 100
    if pacing_cv >= 4:
        validation.warn(f"Inconsistent pacing (CV {pacing_cv:.1f}%)")
        score -= PACING_PENALTY[pacing]
    if spread > 8:
        validation.warn(f"Fastest and slowest splits differ by {spread:.1f}%")
        recommendations.append("Aim for even 5-minute splits on the next test")
        score -= 10

    pace = data.duration_sec / (data.distance_m / 1000)
    lt2 = ThresholdEstimate(
        pace_sec_per_km=pace * TWENTY_MIN_PACE_FACTOR,
        heart_rate=int(round(data.average_hr * TWENTY_MIN_HR_FACTOR)),
    )

    metrics = {
        'average_pace_sec_per_km': round(pace, 1),
        'pacing_quality': pacing.value,
        'pacing_cv_percent': round(pacing_cv, 2),
        'split_spread_percent': round(spread, 1),
    }

    return _finish(FieldTestType.TWENTY_MIN_TT, score, validation, assumed,
                   lt2=lt2, recommendations=recommendations, metrics=metrics)


# ═══════════════════════════════════════════════════════════════════════════════
# Race-based estimation
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_race_result(
    data: RaceInput,
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Translate a recent race result into an LT2 estimate.

    Confidence is capped at MEDIUM since no raw measurements are available.

    Args:
        data: Race distance, finish time and optional HR/level
        params: Engine parameters

    Returns:
        FieldTestResult with LT2 estimate
    """
    validate_race_input(data)

    validation = ValidationSummary()
    assumed = []
    recommendations = ["Confirm with a field test for more precise zones"]
    score = 75.0

    level, level_assumed = fill_default_athlete_level(data.athlete_level)
    if level_assumed:
        assumed.append("athlete_level")

    factor = RACE_PACE_FACTORS[data.distance]
    factor += LEVEL_FACTOR_ADJUSTMENT.get(data.distance, {}).get(level, 0.0)

    race_pace = data.finish_time_sec / RACE_DISTANCE_KM[data.distance]
    heart_rate = None
    if data.average_hr is not None:
        heart_rate = int(round(data.average_hr * RACE_HR_FACTORS[data.distance]))
    else:
        score -= 10

    if data.distance == RaceDistance.MARATHON:
        validation.warn("Marathon pace depends heavily on fueling and endurance")
        score -= 5

    lt2 = ThresholdEstimate(pace_sec_per_km=race_pace * factor, heart_rate=heart_rate)

    metrics = {
        'race_pace_sec_per_km': round(race_pace, 1),
        'pace_factor': round(factor, 3),
        'athlete_level': level.value,
    }

    return _finish(FieldTestType.RACE_BASED, score, validation, assumed,
                   lt2=lt2, recommendations=recommendations, metrics=metrics,
                   ceiling=ConfidenceLevel.MEDIUM)


# ═══════════════════════════════════════════════════════════════════════════════
# Parsing and dispatch
# ═══════════════════════════════════════════════════════════════════════════════

def _require(test_type: FieldTestType, data: Dict[str, Any], fields: Sequence[str]):
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise FieldTestValidationError(test_type, [f"{f} is required" for f in missing])


def _optional_tuple(value: Optional[Sequence[float]]) -> Optional[Tuple[float, ...]]:
    return tuple(float(v) for v in value) if value is not None else None


def _parse_enum(test_type: FieldTestType, enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise FieldTestValidationError(test_type, [f"{name} has unknown value {value!r}"]) from None


def parse_field_test_input(test_type: FieldTestType, data: Dict[str, Any]) -> FieldTestInput:
    """
    Build the protocol input dataclass from a raw submission dict.

    Raises:
        FieldTestValidationError: If required fields are missing
    """
    if test_type == FieldTestType.THIRTY_MIN_TT:
        _require(test_type, data, ['distance_m', 'average_hr'])
        conditions = data.get('conditions')
        return ThirtyMinuteTTInput(
            distance_m=float(data['distance_m']),
            average_hr=float(data['average_hr']),
            duration_sec=float(data.get('duration_sec', 1800)),
            max_hr=data.get('max_hr'),
            split_5min_m=_optional_tuple(data.get('split_5min_m')),
            hr_series=_optional_tuple(data.get('hr_series')),
            hr_sample_interval_sec=float(data.get('hr_sample_interval_sec', 1.0)),
            conditions=EnvironmentalConditions(**conditions) if conditions else None,
        )
    elif test_type == FieldTestType.HR_DRIFT:
        _require(test_type, data,
                 ['duration_min', 'pace_sec_per_km', 'first_half_hr', 'second_half_hr'])
        return HRDriftInput(
            duration_min=float(data['duration_min']),
            pace_sec_per_km=float(data['pace_sec_per_km']),
            first_half_hr=float(data['first_half_hr']),
            second_half_hr=float(data['second_half_hr']),
            hr_series=_optional_tuple(data.get('hr_series')),
        )
    elif test_type == FieldTestType.CRITICAL_VELOCITY:
        _require(test_type, data, ['trials'])
        return CriticalVelocityInput(trials=tuple(
            CriticalVelocityTrial(float(t['distance_m']), float(t['time_sec']))
            for t in data['trials']
        ))
    elif test_type == FieldTestType.TWENTY_MIN_TT:
        _require(test_type, data, ['distance_m', 'average_hr'])
        return TwentyMinuteTTInput(
            distance_m=float(data['distance_m']),
            average_hr=float(data['average_hr']),
            duration_sec=float(data.get('duration_sec', 1200)),
            split_5min_m=_optional_tuple(data.get('split_5min_m')),
        )
    elif test_type == FieldTestType.RACE_BASED:
        _require(test_type, data, ['distance', 'finish_time_sec'])
        level = data.get('athlete_level')
        return RaceInput(
            distance=_parse_enum(test_type, RaceDistance, data['distance'], 'distance'),
            finish_time_sec=float(data['finish_time_sec']),
            average_hr=data.get('average_hr'),
            athlete_level=(
                _parse_enum(test_type, AthleteLevel, level, 'athlete_level')
                if level is not None else None
            ),
        )
    raise ValueError(f"Unsupported field test type: {test_type}")


def analyze_field_test(
    test_type: Union[FieldTestType, str],
    data: Dict[str, Any],
    params: Optional[EngineParams] = None
) -> FieldTestResult:
    """
    Analyze a field test submission.

    Args:
        test_type: Protocol (enum or its string value)
        data: Protocol-specific raw fields
        params: Engine parameters

    Returns:
        FieldTestResult

    Raises:
        ValueError: Unknown protocol
        FieldTestValidationError: Input violates the protocol schema
    """
    protocol = FieldTestType(test_type)
    parsed = parse_field_test_input(protocol, data)

    if protocol == FieldTestType.THIRTY_MIN_TT:
        return analyze_thirty_minute_tt(parsed, params)
    elif protocol == FieldTestType.HR_DRIFT:
        return analyze_hr_drift(parsed, params)
    elif protocol == FieldTestType.CRITICAL_VELOCITY:
        return analyze_critical_velocity(parsed, params)
    elif protocol == FieldTestType.TWENTY_MIN_TT:
        return analyze_twenty_minute_tt(parsed, params)
    elif protocol == FieldTestType.RACE_BASED:
        return analyze_race_result(parsed, params)
    raise ValueError(f"Unsupported field test type: {protocol}")


if __name__ == '__main__':
    print("Field Test Examples")
    print("=" * 50)

    tt = analyze_field_test('THIRTY_MIN_TT', {
        'distance_m': 7800,
        'average_hr': 171,
        'max_hr': 188,
        'split_5min_m': [1290, 1300, 1300, 1305, 1300, 1305],
    })
    print(f"\n30-min TT: LT2 {tt.lt2.to_dict()['pace']} @ {tt.lt2.heart_rate} bpm "
          f"({tt.confidence.value})")

    drift = analyze_field_test('HR_DRIFT', {
        'duration_min': 60, 'pace_sec_per_km': 330,
        'first_half_hr': 140, 'second_half_hr': 144.2,
    })
    print(f"HR drift: {drift.metrics['drift_percent']}% -> {drift.metrics['interpretation']}")

    cv = analyze_field_test('CRITICAL_VELOCITY', {'trials': [
        {'distance_m': 1200, 'time_sec': 240},
        {'distance_m': 2400, 'time_sec': 540},
        {'distance_m': 3600, 'time_sec': 840},
    ]})
    print(f"Critical velocity: {cv.metrics['critical_velocity_m_per_s']} m/s, "
          f"R²={cv.metrics['r_squared']}")
