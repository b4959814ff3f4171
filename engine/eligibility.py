"""
Methodology Eligibility: Prerequisite checks for Norwegian threshold training.

Based on:
- Casado et al. (2022). The Norwegian double-threshold method in
  distance running
- Bakken, M. (2019). The Norwegian model of lactate threshold training
- Tjelta, L.I. (2016). Training characteristics of elite Norwegian runners

Double-threshold training (two sub-threshold sessions on the same day,
twice a week) is only appropriate for athletes with a solid aerobic base,
several years of consistent training and the ability to self-test lactate.
The singles variant (one threshold session per day, three days a week)
has lower prerequisites.

Every call recomputes eligibility from the athlete's trailing training
history; nothing is stored between calls. A four-phase transition plan is
always returned so the caller has actionable next steps.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Dict, Any, List, Callable, Sequence, Union
import logging
import pandas as pd

from .config import EngineParams

logger = logging.getLogger(__name__)


class EligibilityMethodology(Enum):
    """Methodologies gated by prerequisites."""
    NORWEGIAN_DOUBLES = "NORWEGIAN_DOUBLES"
    NORWEGIAN_SINGLES = "NORWEGIAN_SINGLES"


class RequirementType(Enum):
    """Prerequisite categories."""
    TRAINING_AGE = "TRAINING_AGE"
    AEROBIC_BASE = "AEROBIC_BASE"
    EQUIPMENT = "EQUIPMENT"


class Severity(Enum):
    """How strongly an unmet requirement blocks eligibility."""
    CRITICAL = "CRITICAL"   # Blocks eligibility
    MEDIUM = "MEDIUM"       # Advisory


class ThresholdReadiness(Enum):
    """Day-of decision for a planned threshold session."""
    PROCEED = "PROCEED"
    EASY = "EASY"
    REST = "REST"


@dataclass(frozen=True)
class TrainingLoadEntry:
    """One logged training session."""
    date: date
    distance_km: float
    duration_min: float = 0.0


TrainingHistorySource = Callable[[str], Sequence[TrainingLoadEntry]]


@dataclass
class AthleteTrainingContext:
    """Constraints and background for an athlete."""
    weekly_hours: float
    sessions_per_week: int
    training_age_years: float
    has_required_equipment: bool = False
    trailing_training_load: List[TrainingLoadEntry] = field(default_factory=list)


@dataclass(frozen=True)
class RequirementCheck:
    """Outcome of a single prerequisite check."""
    requirement: RequirementType
    met: bool
    message: str
    severity: Severity = Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'requirement': self.requirement.value,
            'met': self.met,
            'message': self.message,
            'severity': self.severity.value,
        }


@dataclass(frozen=True)
class TransitionPhase:
    """One stage of the progression into the full protocol."""
    phase: int
    name: str
    weeks: Union[int, str]
    focus: str
    volume_target: str            # Weekly threshold volume
    weekly_volume: str            # Total weekly running volume
    quality_sessions: int
    success_criteria: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'phase': self.phase,
            'name': self.name,
            'weeks': self.weeks,
            'focus': self.focus,
            'volume_target': self.volume_target,
            'weekly_volume': self.weekly_volume,
            'quality_sessions': self.quality_sessions,
            'success_criteria': list(self.success_criteria),
        }


@dataclass
class MethodologyEligibility:
    """
    Eligibility verdict for one athlete and methodology.

    Created on demand from trailing history; never updated in place.
    """
    athlete_id: str
    methodology: EligibilityMethodology
    eligible: bool
    requirements: List[RequirementCheck]
    transition_plan: List[TransitionPhase]
    average_weekly_km: float
    recommendations: List[str] = field(default_factory=list)
    doubles_comparison: Optional[str] = None

    @property
    def failed_requirements(self) -> List[RequirementType]:
        return [r.requirement for r in self.requirements if not r.met]

    @property
    def estimated_transition_weeks(self) -> int:
        return sum(p.weeks for p in self.transition_plan if isinstance(p.weeks, int))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'athlete_id': self.athlete_id,
            'methodology': self.methodology.value,
            'eligible': self.eligible,
            'requirements': [r.to_dict() for r in self.requirements],
            'transition_plan': [p.to_dict() for p in self.transition_plan],
            'estimated_transition_weeks': self.estimated_transition_weeks,
            'average_weekly_km': round(self.average_weekly_km, 1),
            'recommendations': list(self.recommendations),
            'doubles_comparison': self.doubles_comparison,
        }


def calculate_trailing_weekly_volume(
    entries: Sequence[TrainingLoadEntry],
    as_of: Optional[date] = None,
    window_days: int = 28
) -> float:
    """
    Average weekly distance over a trailing window.

    Formula:
        weekly_km = sum(distance in (as_of - window, as_of]) / (window / 7)

    Args:
        entries: Logged sessions, any order
        as_of: Last day of the window (defaults to the latest entry)
        window_days: Window length in days

    Returns:
        Average km per week (0.0 without entries)
    """
    if not entries:
        return 0.0

    df = pd.DataFrame([
        {'date': pd.Timestamp(e.date), 'distance_km': e.distance_km}
        for e in entries
    ])

    end = pd.Timestamp(as_of) if as_of is not None else df['date'].max()
    start = end - pd.Timedelta(days=window_days)
    in_window = (df['date'] > start) & (df['date'] <= end)

    total = float(df.loc[in_window, 'distance_km'].sum())
    return total / (window_days / 7)


def _format_years(years: float) -> str:
    return f"{years:g}"


def check_training_age(years: float, minimum: float) -> RequirementCheck:
    met = years >= minimum
    return RequirementCheck(
        requirement=RequirementType.TRAINING_AGE,
        met=met,
        message=(
            f"Training age: {_format_years(years)} years "
            f"({'meets' if met else 'need'} minimum {_format_years(minimum)} years)"
        ),
    )


def check_aerobic_base(weekly_km: float, minimum: float) -> RequirementCheck:
    met = weekly_km >= minimum
    return RequirementCheck(
        requirement=RequirementType.AEROBIC_BASE,
        met=met,
        message=(
            f"Weekly volume: {weekly_km:.1f} km/week "
            f"({'meets' if met else 'need'} minimum {minimum:.0f} km/week)"
        ),
    )


def check_equipment(has_equipment: bool, methodology: EligibilityMethodology) -> RequirementCheck:
    if methodology == EligibilityMethodology.NORWEGIAN_DOUBLES:
        message = (
            "Lactate meter available for session control"
            if has_equipment else
            "Lactate meter required: double-threshold sessions are controlled by lactate"
        )
        return RequirementCheck(RequirementType.EQUIPMENT, has_equipment, message)

    message = (
        "Heart rate monitor available for intensity control"
        if has_equipment else
        "Heart rate monitor strongly recommended; pace and RPE can be used instead"
    )
    return RequirementCheck(RequirementType.EQUIPMENT, has_equipment, message, Severity.MEDIUM)


def build_transition_plan(
    methodology: EligibilityMethodology,
    current_weekly_km: float
) -> List[TransitionPhase]:
    """
    Four-phase progression into the full protocol.

    Threshold volume grows from 8-10 km per week to 20-25 km per week
    while total volume grows by up to 30-40%.

    Args:
        methodology: Target methodology
        current_weekly_km: Trailing 4-week average

    Returns:
        List of four TransitionPhase
    """
    v = current_weekly_km
    doubles = methodology == EligibilityMethodology.NORWEGIAN_DOUBLES

    def volume(low: float, high: float) -> str:
        return f"{round(v * low)}-{round(v * high)} km"

    return [
        TransitionPhase(
            phase=1,
            name="Threshold Familiarization",
            weeks=4,
            focus="Learn sub-threshold pace control with one session per week",
            volume_target="8-10 km",
            weekly_volume=volume(1.0, 1.1),
            quality_sessions=1,
            success_criteria=[
                "Finish every session feeling you could do one more rep",
                "HR stays below 87% of max during work intervals",
            ],
        ),
        TransitionPhase(
            phase=2,
            name="Volume Progression",
            weeks=4,
            focus="Add a second threshold session 48 hours after the first",
            volume_target="12-15 km",
            weekly_volume=volume(1.1, 1.2),
            quality_sessions=2,
            success_criteria=[
                "Easy-day pace unchanged",
                "No accumulated fatigue by the end of each week",
            ],
        ),
        TransitionPhase(
            phase=3,
            name="Session Expansion",
            weeks=4,
            focus=(
                "Introduce one double-threshold day (AM + PM)"
                if doubles else
                "Add a third threshold session or extend existing ones"
            ),
            volume_target="15-20 km",
            weekly_volume=volume(1.2, 1.3),
            quality_sessions=3,
            success_criteria=[
                "Morning lactate 2.0-3.0 mmol/L and afternoon 3.0-4.0 mmol/L"
                if doubles else
                "Threshold pace holds across all sessions",
            ],
        ),
        TransitionPhase(
            phase=4,
            name="Full Protocol",
            weeks="Ongoing",
            focus=(
                "Two double-threshold days per week with easy days between"
                if doubles else
                "Three sub-threshold sessions per week, easy running between"
            ),
            volume_target="20-25 km",
            weekly_volume=volume(1.2, 1.4),
            quality_sessions=4 if doubles else 3,
            success_criteria=[
                "Recovery always prioritized over session completion",
                "Retest thresholds every 8-12 weeks",
            ],
        ),
    ]


def compare_with_doubles(
    weekly_km: float,
    training_age_years: float,
    has_lactate_meter: bool,
    params: EngineParams
) -> str:
    """Advice on whether a singles athlete could move to doubles."""
    base_ok = (weekly_km >= params.norwegian_min_weekly_km
               and training_age_years >= params.norwegian_min_training_years)

    if base_ok and has_lactate_meter:
        return "Eligible for both variants; choose doubles only with 10+ hours per week available"
    elif base_ok:
        return "Close to doubles eligibility; a lactate meter is the missing piece"
    return (
        f"Doubles needs {params.norwegian_min_weekly_km:.0f}+ km/week, "
        f"{params.norwegian_min_training_years}+ years and a lactate meter; "
        f"reassess in 6-12 months"
    )


def validate_norwegian_eligibility(
    athlete_id: str,
    history_source: Optional[TrainingHistorySource],
    context: AthleteTrainingContext,
    as_of: Optional[date] = None,
    variant: EligibilityMethodology = EligibilityMethodology.NORWEGIAN_DOUBLES,
    params: Optional[EngineParams] = None
) -> MethodologyEligibility:
    """
    Check an athlete against Norwegian method prerequisites.

    Requirements (doubles / singles):
        TRAINING_AGE: >= 2 / >= 1 years
        AEROBIC_BASE: trailing 4-week average >= 60 / >= 40 km/week
        EQUIPMENT: lactate meter (critical) / HR monitor (advisory)

    Args:
        athlete_id: Athlete identifier passed to the history source
        history_source: Callable returning the athlete's logged sessions;
            when None the context's trailing_training_load is used
        context: Athlete background
        as_of: End of the trailing window (defaults to latest entry)
        variant: Doubles or singles
        params: Engine parameters

    Returns:
        MethodologyEligibility
    """
    if params is None:
        params = EngineParams()

    if history_source is not None:
        entries = list(history_source(athlete_id))
    else:
        entries = list(context.trailing_training_load)

    weekly_km = calculate_trailing_weekly_volume(entries, as_of, params.trailing_window_days)

    if variant == EligibilityMethodology.NORWEGIAN_DOUBLES:
        min_years = params.norwegian_min_training_years
        min_km = params.norwegian_min_weekly_km
    elif variant == EligibilityMethodology.NORWEGIAN_SINGLES:
        min_years = params.singles_min_training_years
        min_km = params.singles_min_weekly_km
    else:
        raise ValueError(f"Unsupported methodology: {variant}")

    requirements = [
        check_training_age(context.training_age_years, min_years),
        check_aerobic_base(weekly_km, min_km),
        check_equipment(context.has_required_equipment, variant),
    ]

    eligible = all(r.met for r in requirements if r.severity == Severity.CRITICAL)

    recommendations = []
    for check in requirements:
        if check.met:
            continue
        if check.requirement == RequirementType.TRAINING_AGE:
            remaining = min_years - context.training_age_years
            recommendations.append(
                f"Build {_format_years(remaining)} more year(s) of consistent training"
            )
        elif check.requirement == RequirementType.AEROBIC_BASE:
            recommendations.append(
                f"Increase weekly volume gradually (about 10% per week) "
                f"from {weekly_km:.1f} to {min_km:.0f} km/week"
            )
        elif check.requirement == RequirementType.EQUIPMENT:
            recommendations.append(
                "Acquire a lactate meter or arrange regular lactate testing"
                if variant == EligibilityMethodology.NORWEGIAN_DOUBLES else
                "Use a heart rate monitor to keep threshold sessions controlled"
            )

    doubles_comparison = None
    if variant == EligibilityMethodology.NORWEGIAN_SINGLES and eligible:
        doubles_comparison = compare_with_doubles(
            weekly_km, context.training_age_years, context.has_required_equipment, params
        )

    logger.debug(
        "Eligibility %s for %s: eligible=%s weekly_km=%.1f failed=%s",
        variant.value, athlete_id, eligible, weekly_km,
        [r.requirement.value for r in requirements if not r.met]
    )

    return MethodologyEligibility(
        athlete_id=athlete_id,
        methodology=variant,
        eligible=eligible,
        requirements=requirements,
        transition_plan=build_transition_plan(variant, weekly_km),
        average_weekly_km=weekly_km,
        recommendations=recommendations,
        doubles_comparison=doubles_comparison,
    )


def evaluate_threshold_readiness(
    readiness_score: float,
    hrv_status: Optional[str] = None
) -> Dict[str, Any]:
    """
    Decide whether today's threshold session should go ahead.

    Readiness >= 7 with good (or unknown) HRV proceeds. Readiness 6-7
    swaps to easy aerobic running. Anything else is a rest day.

    Args:
        readiness_score: 0-10 readiness score
        hrv_status: EXCELLENT, GOOD, MODERATE, FAIR, POOR or VERY_POOR

    Returns:
        Dictionary with decision, recommendation and alternative session
    """
    hrv_ok = hrv_status is None or hrv_status.upper() in ("EXCELLENT", "GOOD")

    if readiness_score >= 7.0 and hrv_ok:
        return {
            'decision': ThresholdReadiness.PROCEED,
            'recommendation': "Readiness is sufficient; proceed with the threshold session",
            'alternative_session': None,
        }
    if 6.0 <= readiness_score < 7.0:
        return {
            'decision': ThresholdReadiness.EASY,
            'recommendation': "Readiness is moderate; replace threshold with easy aerobic work",
            'alternative_session': "Easy run, 60-90 min",
        }
    return {
        'decision': ThresholdReadiness.REST,
        'recommendation': "Readiness is low; rest or very easy recovery",
        'alternative_session': "Rest or recovery run, 30-45 min",
    }


if __name__ == '__main__':
    from datetime import timedelta

    print("Norwegian Eligibility Examples")
    print("=" * 50)

    today = date(2024, 3, 31)
    history = [TrainingLoadEntry(today - timedelta(days=d), 65 / 7) for d in range(28)]
    context = AthleteTrainingContext(
        weekly_hours=8, sessions_per_week=7, training_age_years=3,
        has_required_equipment=True, trailing_training_load=history,
    )

    result = validate_norwegian_eligibility("athlete-1", None, context, as_of=today)
    print(f"\nEligible: {result.eligible} ({result.average_weekly_km:.1f} km/week)")
    for req in result.requirements:
        print(f"  [{'x' if req.met else ' '}] {req.requirement.value}: {req.message}")
    for phase in result.transition_plan:
        print(f"  Phase {phase.phase}: {phase.name} ({phase.volume_target} threshold)")
