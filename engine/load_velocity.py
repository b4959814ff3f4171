"""
Load-Velocity Profiling: Velocity-based strength estimates.

Based on:
- Gonzalez-Badillo & Sanchez-Medina (2010). Movement velocity as a measure
  of loading intensity in resistance training
- Jidovtseff et al. (2011). Using the load-velocity relationship for 1RM
  prediction
- Pareja-Blanco et al. (2017). Velocity loss as a set termination criterion

Mean concentric velocity falls linearly with load. Fitting that line per
exercise lets us estimate the one-repetition maximum (e1RM) as the load at
which velocity reaches a minimal velocity threshold, and prescribe loads
for a target velocity.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Sequence, Tuple
import logging
import pandas as pd

from .config import EngineParams
from .confidence import ConfidenceLevel
from .curve_fitting import LinearFit, linear_regression

logger = logging.getLogger(__name__)


class VelocityTrend(Enum):
    """Direction of average bar velocity between two periods."""
    IMPROVING = "IMPROVING"
    STABLE = "STABLE"
    DECLINING = "DECLINING"


class Readiness(Enum):
    """Readiness inferred from the velocity trend."""
    FRESH = "FRESH"
    NORMAL = "NORMAL"
    FATIGUED = "FATIGUED"


@dataclass(frozen=True)
class LoadVelocityDataPoint:
    """Best repetition at a given load."""
    load: float       # kg
    velocity: float   # m/s, mean concentric


@dataclass
class LoadVelocityProfile:
    """
    Fitted load-velocity relationship for one exercise.

    e1rm maps each minimal velocity threshold (m/s) to the load where the
    fitted line reaches it. An invalid profile must not be used for load
    prescription.
    """
    data_points: List[LoadVelocityDataPoint]
    slope: float
    intercept: float
    r_squared: float
    e1rm: Dict[float, Optional[float]]
    is_valid: bool
    exercise_name: Optional[str] = None
    issues: List[str] = field(default_factory=list)

    @property
    def load_range(self) -> float:
        loads = [p.load for p in self.data_points]
        return max(loads) - min(loads)

    def e1rm_at(self, velocity: float) -> Optional[float]:
        return self.e1rm.get(velocity)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'exercise_name': self.exercise_name,
            'data_points': [{'load': p.load, 'velocity': p.velocity} for p in self.data_points],
            'slope': self.slope,
            'intercept': self.intercept,
            'r_squared': self.r_squared,
            'e1rm': {
                f"{v:.2f}": round(load, 1) if load is not None else None
                for v, load in self.e1rm.items()
            },
            'is_valid': self.is_valid,
            'issues': list(self.issues),
        }


@dataclass
class VelocityLossCheck:
    """Rep-by-rep velocity loss decision for an autoregulated set."""
    should_stop: bool
    velocity_loss_percent: float
    velocity_loss_absolute: float
    rep_number: int
    reason: str = ""


def select_best_reps(
    points: Sequence[LoadVelocityDataPoint]
) -> List[LoadVelocityDataPoint]:
    """
    Keep the fastest repetition at each distinct load.

    Returns:
        One point per load, sorted by load
    """
    if not points:
        return []

    df = pd.DataFrame([{'load': p.load, 'velocity': p.velocity} for p in points])
    best = df.groupby('load', sort=True)['velocity'].max()

    return [
        LoadVelocityDataPoint(load=float(load), velocity=float(velocity))
        for load, velocity in best.items()
    ]


def estimate_load_for_velocity(fit: LinearFit, velocity: float) -> Optional[float]:
    """
    Invert velocity = slope * load + intercept.

    Returns None when the slope is not negative, since the relationship
    then has no meaningful inverse.
    """
    if fit.slope >= 0:
        return None
    return (velocity - fit.intercept) / fit.slope


def build_load_velocity_profile(
    points: Sequence[LoadVelocityDataPoint],
    exercise_name: Optional[str] = None,
    params: Optional[EngineParams] = None
) -> LoadVelocityProfile:
    """
    Fit a load-velocity profile from raw repetitions.

    Validity requires all of:
        - at least 3 distinct loads
        - R² >= 0.8
        - slope < 0
        - tested load range >= 20% of the estimated 1RM

    Args:
        points: Raw (load, velocity) samples, any number per load
        exercise_name: Optional exercise label
        params: Engine parameters

    Returns:
        LoadVelocityProfile

    Raises:
        ValueError: If fewer than 2 distinct loads are supplied
    """
    if params is None:
        params = EngineParams()

    best = select_best_reps(points)
    if len(best) < 2:
        raise ValueError(
            f"Load-velocity profile needs at least 2 distinct loads, got {len(best)}"
        )

    fit = linear_regression([(p.load, p.velocity) for p in best])

    e1rm = {}
    for velocity in params.e1rm_velocities:
        load = estimate_load_for_velocity(fit, velocity)
        e1rm[velocity] = load

    issues = []
    if len(best) < params.lv_min_loads:
        issues.append(
            f"Only {len(best)} distinct loads (need at least {params.lv_min_loads})"
        )
    if fit.r_squared < params.lv_min_r_squared:
        issues.append(
            f"Poor fit: R²={fit.r_squared:.3f} (need at least {params.lv_min_r_squared})"
        )
    if fit.slope >= 0:
        issues.append("Velocity does not decrease with load (slope >= 0)")

    reference_velocity = min(params.e1rm_velocities, key=lambda v: abs(v - 0.20))
    one_rm = e1rm.get(reference_velocity)
    load_range = best[-1].load - best[0].load
    if one_rm is not None and one_rm > 0:
        if load_range < params.lv_min_range_fraction * one_rm:
            issues.append(
                f"Tested load range {load_range:.1f} kg is below "
                f"{params.lv_min_range_fraction:.0%} of estimated 1RM ({one_rm:.1f} kg)"
            )
    elif fit.slope < 0:
        issues.append("Estimated 1RM is not positive")

    is_valid = not issues
    if not is_valid:
        logger.debug("Profile %s invalid: %s", exercise_name or '<unnamed>', '; '.join(issues))

    return LoadVelocityProfile(
        data_points=best,
        slope=fit.slope,
        intercept=fit.intercept,
        r_squared=fit.r_squared,
        e1rm=e1rm,
        is_valid=is_valid,
        exercise_name=exercise_name,
        issues=issues,
    )


def check_velocity_loss(
    rep_velocities: Sequence[float],
    max_loss_percent: float = 20.0,
    min_velocity: Optional[float] = None
) -> VelocityLossCheck:
    """
    Decide whether a set should stop based on velocity loss.

    Each rep is compared with the first rep of the set. The set stops at
    the first rep whose cumulative loss exceeds the percentage ceiling or,
    when given, whose velocity falls below the absolute floor (m/s).

    Args:
        rep_velocities: Mean velocity of each rep in order
        max_loss_percent: Percentage loss that ends the set
        min_velocity: Rep velocity (m/s) below which the set ends

    Returns:
        VelocityLossCheck for the stopping rep, or for the last rep when
        the set may continue
    """
    if not rep_velocities:
        raise ValueError("At least one rep velocity is required")

    first = rep_velocities[0]
    if first <= 0:
        raise ValueError(f"First rep velocity must be positive, got {first}")

    loss_percent = 0.0
    loss_absolute = 0.0
    for rep, velocity in enumerate(rep_velocities, start=1):
        loss_absolute = first - velocity
        loss_percent = loss_absolute / first * 100

        if loss_percent > max_loss_percent:
            return VelocityLossCheck(
                should_stop=True,
                velocity_loss_percent=round(loss_percent, 1),
                velocity_loss_absolute=round(loss_absolute, 3),
                rep_number=rep,
                reason=f"Velocity loss {loss_percent:.1f}% exceeds {max_loss_percent:.0f}%",
            )
        if min_velocity is not None and velocity < min_velocity:
            return VelocityLossCheck(
                should_stop=True,
                velocity_loss_percent=round(loss_percent, 1),
                velocity_loss_absolute=round(loss_absolute, 3),
                rep_number=rep,
                reason=f"Rep velocity {velocity:.2f} m/s below floor {min_velocity:.2f} m/s",
            )

    return VelocityLossCheck(
        should_stop=False,
        velocity_loss_percent=round(loss_percent, 1),
        velocity_loss_absolute=round(loss_absolute, 3),
        rep_number=len(rep_velocities),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Autoregulation helpers
# ═══════════════════════════════════════════════════════════════════════════════

def assess_profile_confidence(profile: LoadVelocityProfile) -> ConfidenceLevel:
    """
    Grade how far a profile can be trusted for 1RM estimation.

    HIGH: R² >= 0.95 with at least 10 points
    MEDIUM: R² >= 0.85 with at least 5 points
    LOW: anything else
    """
    n = len(profile.data_points)
    if profile.r_squared >= 0.95 and n >= 10:
        return ConfidenceLevel.HIGH
    elif profile.r_squared >= 0.85 and n >= 5:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_velocity_trend(
    recent: Sequence[float],
    previous: Sequence[float],
    threshold_percent: float = 3.0
) -> Tuple[Optional[VelocityTrend], float]:
    """
    Compare average velocity across two periods.

    Returns:
        Tuple of (trend or None without data, percent change)
    """
    if not recent or not previous:
        return None, 0.0

    recent_avg = sum(recent) / len(recent)
    previous_avg = sum(previous) / len(previous)
    if previous_avg <= 0:
        return None, 0.0

    change = (recent_avg - previous_avg) / previous_avg * 100
    if change > threshold_percent:
        return VelocityTrend.IMPROVING, change
    elif change < -threshold_percent:
        return VelocityTrend.DECLINING, change
    return VelocityTrend.STABLE, change


def recommend_vbt_load(
    profile: Optional[LoadVelocityProfile],
    trend: Optional[VelocityTrend] = None,
    fallback_one_rm: Optional[float] = None,
    intensity: float = 0.75
) -> Dict[str, Any]:
    """
    Next-session load recommendation driven by velocity data.

    A valid profile supplies the 1RM; otherwise the traditional estimate is
    used. The trend nudges the load and velocity-loss target.

    Args:
        profile: Load-velocity profile (ignored when invalid)
        trend: Recent velocity trend
        fallback_one_rm: Rep-based 1RM estimate
        intensity: Fraction of 1RM to prescribe

    Returns:
        Dictionary with load, target velocity range, velocity-loss target,
        readiness and the 1RM source
    """
    one_rm = None
    source = None
    if profile is not None and profile.is_valid:
        one_rm = profile.e1rm_at(0.20)
        if one_rm is None:
            one_rm = next((v for v in profile.e1rm.values() if v is not None), None)
        source = 'VBT'
    if one_rm is None:
        one_rm = fallback_one_rm
        source = 'REP_BASED' if one_rm is not None else None

    load = one_rm * intensity if one_rm is not None else None
    velocity_loss_target = 20
    readiness = Readiness.NORMAL if trend is not None else None

    if load is not None and trend == VelocityTrend.IMPROVING:
        load *= 1.025
        velocity_loss_target = 25
        readiness = Readiness.FRESH
    elif load is not None and trend == VelocityTrend.DECLINING:
        load *= 0.95
        velocity_loss_target = 15
        readiness = Readiness.FATIGUED

    return {
        'next_session_load': round(load * 2) / 2 if load is not None else None,
        'target_velocity': (0.50, 0.75),
        'velocity_loss_target': velocity_loss_target,
        'readiness': readiness,
        'one_rm': one_rm,
        'one_rm_source': source,
    }


def compare_one_rm_estimates(
    vbt_one_rm: float,
    traditional_one_rm: float,
    agreement_percent: float = 5.0
) -> Dict[str, Any]:
    """
    Compare a velocity-based 1RM with a rep-based estimate.

    Returns:
        Dictionary with percent difference, agreement flag and a note
    """
    if traditional_one_rm <= 0:
        raise ValueError(f"Traditional 1RM must be positive, got {traditional_one_rm}")

    difference = (vbt_one_rm - traditional_one_rm) / traditional_one_rm * 100
    agrees = abs(difference) <= agreement_percent

    if agrees:
        note = "Estimates agree; either can be used for prescription"
    elif difference > 0:
        note = "Velocity estimate is higher; the athlete may be stronger than rep tests show"
    else:
        note = "Velocity estimate is lower; check fatigue or profile quality"

    return {
        'difference_percent': round(difference, 1),
        'agrees': agrees,
        'note': note,
    }


if __name__ == '__main__':
    print("Load-Velocity Profile Examples")
    print("=" * 50)

    raw = [
        LoadVelocityDataPoint(60, 1.15), LoadVelocityDataPoint(60, 1.20),
        LoadVelocityDataPoint(80, 0.98), LoadVelocityDataPoint(100, 0.76),
        LoadVelocityDataPoint(120, 0.55), LoadVelocityDataPoint(140, 0.37),
    ]
    profile = build_load_velocity_profile(raw, exercise_name="Back Squat")
    print(f"\n{profile.exercise_name}: slope={profile.slope:.4f}, "
          f"intercept={profile.intercept:.3f}, R²={profile.r_squared:.4f}")
    for velocity, load in profile.e1rm.items():
        shown = f"{load:.1f} kg" if load is not None else "n/a"
        print(f"  e1RM @ {velocity:.2f} m/s: {shown}")
    print(f"  Valid: {profile.is_valid}")

    check = check_velocity_loss([0.62, 0.60, 0.57, 0.53, 0.48])
    print(f"\nVelocity loss: stop={check.should_stop} at rep {check.rep_number} "
          f"({check.velocity_loss_percent}%)")
