"""
Workout Distribution: Weekly session allocation per training methodology.

Based on:
- Seiler, S. (2010). What is best practice for training intensity distribution?
- Canova, R. (2009). Marathon training: a scientific approach
- Casado et al. (2022). The Norwegian double-threshold method in
  distance running
- Foster et al. (2001). Hard/easy sequencing and recovery between
  high-intensity sessions

A week is a list of WorkoutSlot objects, one per training session. Each
methodology has its own allocator, but every allocator keeps the same
contract:

    1. Exactly sessions_per_week slots are returned
    2. The number of HARD slots is round(hard% x sessions), limited by the
       phase and by how many non-adjacent training days exist
    3. HARD slots never fall on consecutive days (Sunday -> Monday counts)

Norwegian threshold sessions are lactate controlled (2-4 mmol/L) and are
tagged MODERATE. Two of them on the same day (AM + PM) is the purpose of
the doubles method, so the rule above is never relaxed.
"""

from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
from typing import Optional, Dict, Any, List, Tuple, Sequence
import logging
import math

from .intensity_targets import (
    IntensityTargets, IntensityMethodology, METHODOLOGY_PRESETS,
    validate_targets, normalize_targets,
)

logger = logging.getLogger(__name__)


class MethodologyType(Enum):
    """Training methodologies the planner can allocate."""
    CANOVA = "CANOVA"                        # Specific-endurance periodization
    POLARIZED = "POLARIZED"                  # 80/20 easy/hard
    NORWEGIAN_DOUBLES = "NORWEGIAN_DOUBLES"  # Double threshold days
    NORWEGIAN_SINGLES = "NORWEGIAN_SINGLES"  # One threshold session per day
    PYRAMIDAL = "PYRAMIDAL"                  # Easy > moderate > hard
    DEFAULT = "DEFAULT"                      # Driven purely by targets


class TrainingPhase(Enum):
    """Macrocycle phases."""
    BASE = "BASE"
    BUILD = "BUILD"
    PEAK = "PEAK"
    TAPER = "TAPER"
    RECOVERY = "RECOVERY"


class IntensityZone(Enum):
    """Three-zone intensity model (LT1 / LT2 boundaries)."""
    EASY = "EASY"           # Below LT1
    MODERATE = "MODERATE"   # Between LT1 and LT2
    HARD = "HARD"           # Above LT2


class WorkoutType(Enum):
    """Session types produced by the allocators."""
    EASY_RUN = "EASY_RUN"
    RECOVERY_RUN = "RECOVERY_RUN"
    LONG_RUN = "LONG_RUN"
    LONG_FAST_RUN = "LONG_FAST_RUN"             # Canova long run with specific segments
    FUNDAMENTAL_RUN = "FUNDAMENTAL_RUN"         # Canova steady aerobic run
    PROGRESSIVE_RUN = "PROGRESSIVE_RUN"
    TEMPO_RUN = "TEMPO_RUN"
    THRESHOLD_INTERVALS = "THRESHOLD_INTERVALS"
    SPECIFIC_INTERVALS = "SPECIFIC_INTERVALS"   # Race-pace work
    VO2MAX_INTERVALS = "VO2MAX_INTERVALS"
    HILL_SPRINTS = "HILL_SPRINTS"


class DayOfWeek(Enum):
    """Days of the week."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


class SessionOfDay(Enum):
    """Position of a session within its day."""
    SINGLE = "SINGLE"
    AM = "AM"
    PM = "PM"


# ═══════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

MIN_SESSIONS = 1
MAX_SESSIONS = 14

_MON, _TUE, _WED, _THU, _FRI, _SAT, _SUN = list(DayOfWeek)

# Training days for one session per day
TRAINING_DAY_PATTERNS = {
    1: [_WED],
    2: [_TUE, _SAT],
    3: [_MON, _WED, _FRI],
    4: [_MON, _TUE, _THU, _SAT],
    5: [_MON, _TUE, _THU, _FRI, _SAT],
    6: [_MON, _TUE, _WED, _THU, _FRI, _SAT],
    7: list(DayOfWeek),
}

# Order used to add days when preferred rest days remove pattern days
DAY_FILL_ORDER = [_SAT, _TUE, _THU, _MON, _WED, _FRI, _SUN]

# Second (PM) sessions go on easy days first, in this order
SECOND_SESSION_ORDER = [_TUE, _THU, _SAT, _FRI, _MON, _WED, _SUN]

LONG_RUN_DAY_ORDER = [_SUN, _SAT]

# Maximum HARD slots per week, by phase
PHASE_HARD_CAP = {
    TrainingPhase.BASE: 2,
    TrainingPhase.BUILD: 3,
    TrainingPhase.PEAK: 3,
    TrainingPhase.TAPER: 1,
    TrainingPhase.RECOVERY: 0,
}

# Duration scaling by phase
PHASE_DURATION_FACTOR = {
    TrainingPhase.BASE: 1.0,
    TrainingPhase.BUILD: 1.0,
    TrainingPhase.PEAK: 0.95,
    TrainingPhase.TAPER: 0.7,
    TrainingPhase.RECOVERY: 0.6,
}

# Nominal session durations in minutes
BASE_DURATIONS = {
    WorkoutType.EASY_RUN: 45,
    WorkoutType.RECOVERY_RUN: 30,
    WorkoutType.LONG_RUN: 90,
    WorkoutType.LONG_FAST_RUN: 100,
    WorkoutType.FUNDAMENTAL_RUN: 60,
    WorkoutType.PROGRESSIVE_RUN: 60,
    WorkoutType.TEMPO_RUN: 50,
    WorkoutType.THRESHOLD_INTERVALS: 60,
    WorkoutType.SPECIFIC_INTERVALS: 70,
    WorkoutType.VO2MAX_INTERVALS: 55,
    WorkoutType.HILL_SPRINTS: 45,
}

METHODOLOGY_DEFAULT_TARGETS = {
    MethodologyType.CANOVA: IntensityTargets(
        70, 20, 10, IntensityMethodology.PYRAMIDAL, "Canova specific"),
    MethodologyType.POLARIZED: METHODOLOGY_PRESETS[IntensityMethodology.POLARIZED],
    MethodologyType.NORWEGIAN_DOUBLES: IntensityTargets(
        80, 15, 5, IntensityMethodology.THRESHOLD_FOCUSED, "Norwegian double threshold"),
    MethodologyType.NORWEGIAN_SINGLES: IntensityTargets(
        80, 15, 5, IntensityMethodology.THRESHOLD_FOCUSED, "Norwegian single threshold"),
    MethodologyType.PYRAMIDAL: METHODOLOGY_PRESETS[IntensityMethodology.PYRAMIDAL],
    MethodologyType.DEFAULT: METHODOLOGY_PRESETS[IntensityMethodology.CUSTOM],
}

# (workout type, zone, description)
_Session = Tuple[WorkoutType, IntensityZone, str]

_EASY = (WorkoutType.EASY_RUN, IntensityZone.EASY, "Easy aerobic run below LT1")
_RECOVERY = (WorkoutType.RECOVERY_RUN, IntensityZone.EASY, "Short recovery run")
_LONG = (WorkoutType.LONG_RUN, IntensityZone.EASY, "Long easy run")


@dataclass
class MethodologyConfig:
    """
    Methodology selection for one planning request.

    intensity_targets overrides the methodology's default split.
    rest_days are days the athlete cannot train.
    """
    type: MethodologyType
    intensity_targets: Optional[IntensityTargets] = None
    rest_days: Optional[List[DayOfWeek]] = None


@dataclass(frozen=True)
class WorkoutSlot:
    """One planned training session."""
    day: DayOfWeek
    workout_type: WorkoutType
    zone: IntensityZone
    duration_minutes: float
    session_of_day: SessionOfDay = SessionOfDay.SINGLE
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'day': self.day.name.capitalize(),
            'workout_type': self.workout_type.value,
            'zone': self.zone.value,
            'duration_minutes': self.duration_minutes,
            'session_of_day': self.session_of_day.value,
            'description': self.description,
        }


@dataclass
class WeeklyDistribution:
    """Ordered slots for one week plus summary figures."""
    slots: List[WorkoutSlot]
    rest_days: List[DayOfWeek]
    methodology: MethodologyType
    phase: TrainingPhase
    targets: Optional[IntensityTargets] = None
    target_hard_slots: int = 0
    notes: List[str] = field(default_factory=list)

    @property
    def session_count(self) -> int:
        return len(self.slots)

    @property
    def zone_counts(self) -> Dict[IntensityZone, int]:
        counts = {zone: 0 for zone in IntensityZone}
        for slot in self.slots:
            counts[slot.zone] += 1
        return counts

    @property
    def hard_fraction(self) -> float:
        if not self.slots:
            return 0.0
        return self.zone_counts[IntensityZone.HARD] / len(self.slots)

    @property
    def hard_days(self) -> List[DayOfWeek]:
        days = {s.day for s in self.slots if s.zone == IntensityZone.HARD}
        return sorted(days, key=lambda d: d.value)

    @property
    def total_duration_minutes(self) -> float:
        return sum(s.duration_minutes for s in self.slots)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'methodology': self.methodology.value,
            'phase': self.phase.value,
            'sessions': self.session_count,
            'slots': [s.to_dict() for s in self.slots],
            'rest_days': [d.name.capitalize() for d in self.rest_days],
            'zone_counts': {z.value: n for z, n in self.zone_counts.items()},
            'hard_fraction': round(self.hard_fraction, 3),
            'target_hard_slots': self.target_hard_slots,
            'total_duration_minutes': self.total_duration_minutes,
            'targets': self.targets.to_dict() if self.targets else None,
            'notes': list(self.notes),
        }


# ═══════════════════════════════════════════════════════════════════════════
# DAY SELECTION
# ═══════════════════════════════════════════════════════════════════════════

def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up."""
    return int(math.floor(value + 0.5))


def are_consecutive_days(a: DayOfWeek, b: DayOfWeek) -> bool:
    """True if the two days are adjacent, wrapping Sunday to Monday."""
    return (a.value - b.value) % 7 in (1, 6)


def has_consecutive_hard_days(slots: Sequence[WorkoutSlot]) -> bool:
    """Check whether any two HARD slots fall on consecutive days."""
    hard = {s.day for s in slots if s.zone == IntensityZone.HARD}
    return any(are_consecutive_days(a, b) for a, b in combinations(hard, 2))


def hard_slot_budget(
    targets: IntensityTargets,
    sessions_per_week: int,
    phase: TrainingPhase
) -> int:
    """
    Number of HARD slots the targets ask for, limited by phase.

    The number of non-adjacent training days can lower this further when
    the week is laid out.
    """
    wanted = round_half_up(targets.hard_percent / 100.0 * sessions_per_week)
    return min(wanted, PHASE_HARD_CAP[phase])


def _rank(day: DayOfWeek, preference: Sequence[DayOfWeek]) -> int:
    if day in preference:
        return preference.index(day)
    return len(preference) + day.value


def _sort_days(days) -> List[DayOfWeek]:
    return sorted(days, key=lambda d: d.value)


def select_spaced_days(
    candidates: Sequence[DayOfWeek],
    count: int,
    preference: Sequence[DayOfWeek] = ()
) -> List[DayOfWeek]:
    """
    Pick up to `count` candidate days with no two on consecutive days.

    The largest feasible set is returned; ties are broken by preference
    order. Candidates are at most seven, so all combinations are tried.
    """
    for k in range(min(count, len(candidates)), 0, -1):
        best = None
        for combo in combinations(candidates, k):
            if any(are_consecutive_days(a, b) for a, b in combinations(combo, 2)):
                continue
            score = sum(_rank(d, preference) for d in combo)
            if best is None or score < best[0]:
                best = (score, combo)
        if best is not None:
            return _sort_days(best[1])
    return []


def _select_days(
    candidates: Sequence[DayOfWeek],
    count: int,
    preference: Sequence[DayOfWeek],
    avoid_next_to: Sequence[DayOfWeek] = ()
) -> List[DayOfWeek]:
    """Pick days by preference, favouring days not adjacent to avoid_next_to."""
    def key(day):
        crowded = any(are_consecutive_days(day, other) for other in avoid_next_to)
        return (crowded, _rank(day, preference))

    return _sort_days(sorted(candidates, key=key)[:max(0, count)])


def _pick_long_run_day(
    days: Sequence[DayOfWeek],
    taken: Sequence[DayOfWeek]
) -> Optional[DayOfWeek]:
    free = [d for d in days if d not in taken]
    if len(days) < 2 or not free:
        return None
    for day in LONG_RUN_DAY_ORDER:
        if day in free:
            return day
    return free[-1]


# ═══════════════════════════════════════════════════════════════════════════
# DEFAULT FILLING
# ═══════════════════════════════════════════════════════════════════════════

def fill_default_targets(config: MethodologyConfig) -> Tuple[IntensityTargets, bool]:
    """
    Resolve the split a methodology config should use.

    Returns:
        Tuple of (targets, assumed). assumed is True when the methodology
        default was used. Supplied targets that do not sum to 100 are
        rescaled.
    """
    if config.intensity_targets is None:
        return METHODOLOGY_DEFAULT_TARGETS[config.type], True

    targets = config.intensity_targets
    if not validate_targets(targets):
        logger.warning("Normalizing planner targets %s", targets.as_tuple())
        targets = normalize_targets(targets)
    return targets, False


def training_days(
    sessions_per_week: int,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[DayOfWeek]:
    """
    Days that carry at least one session.

    Uses the fixed pattern for the session count, then moves sessions off
    any rest days. Above seven sessions every available day is used and the
    remainder become second sessions.

    Raises:
        ValueError: If the rest days leave too few days for the sessions
    """
    rest = set(rest_days or [])
    available = [d for d in DayOfWeek if d not in rest]
    if not available or sessions_per_week > 2 * len(available):
        raise ValueError(
            f"{sessions_per_week} sessions do not fit in "
            f"{len(available)} available days"
        )

    count = min(sessions_per_week, 7, len(available))
    days = [d for d in TRAINING_DAY_PATTERNS[count] if d not in rest]
    for day in DAY_FILL_ORDER:
        if len(days) >= count:
            break
        if day not in rest and day not in days:
            days.append(day)
    return _sort_days(days)


# ═══════════════════════════════════════════════════════════════════════════
# SLOT ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════════

def _duration(workout_type: WorkoutType, phase: TrainingPhase) -> float:
    return float(round(BASE_DURATIONS[workout_type] * PHASE_DURATION_FACTOR[phase]))


def _slot(
    day: DayOfWeek,
    session: _Session,
    phase: TrainingPhase,
    session_of_day: SessionOfDay = SessionOfDay.SINGLE
) -> WorkoutSlot:
    workout_type, zone, description = session
    return WorkoutSlot(
        day=day,
        workout_type=workout_type,
        zone=zone,
        duration_minutes=_duration(workout_type, phase),
        session_of_day=session_of_day,
        description=description,
    )


def _order_slots(slots: List[WorkoutSlot]) -> List[WorkoutSlot]:
    position = {SessionOfDay.AM: 0, SessionOfDay.SINGLE: 0, SessionOfDay.PM: 1}
    return sorted(slots, key=lambda s: (s.day.value, position[s.session_of_day]))


def _expand_week(
    primary: Dict[DayOfWeek, _Session],
    sessions_per_week: int,
    phase: TrainingPhase
) -> List[WorkoutSlot]:
    """
    Turn one session per day into the full slot list.

    Sessions beyond one per day are added as PM recovery runs, easy days
    first.
    """
    extra = sessions_per_week - len(primary)
    quality = {d for d, s in primary.items() if s[1] != IntensityZone.EASY}

    doubled = sorted(
        primary,
        key=lambda d: (d in quality, SECOND_SESSION_ORDER.index(d))
    )[:extra]

    slots = []
    for day, session in primary.items():
        if day in doubled:
            slots.append(_slot(day, session, phase, SessionOfDay.AM))
            slots.append(_slot(day, _RECOVERY, phase, SessionOfDay.PM))
        else:
            slots.append(_slot(day, session, phase))
    return _order_slots(slots)


def _layout_week(
    sessions_per_week: int,
    phase: TrainingPhase,
    rest_days: Optional[Sequence[DayOfWeek]],
    hard_count: int,
    moderate_count: int,
    hard_sessions: Sequence[_Session],
    moderate_sessions: Sequence[_Session],
    long_session: _Session,
    hard_preference: Sequence[DayOfWeek],
    moderate_preference: Sequence[DayOfWeek]
) -> List[WorkoutSlot]:
    """
    Shared week layout for the single-session-per-day methodologies.

    HARD days are chosen first with spacing enforced, then the long run,
    then MODERATE days away from HARD days where possible. Session lists
    are cycled when more days than sessions are requested.
    """
    days = training_days(sessions_per_week, rest_days)
    hard_days = select_spaced_days(days, hard_count, hard_preference)
    long_day = _pick_long_run_day(days, hard_days)

    open_days = [d for d in days if d not in hard_days and d != long_day]
    moderate_days = _select_days(open_days, moderate_count, moderate_preference, hard_days)

    easy = _RECOVERY if phase == TrainingPhase.RECOVERY else _EASY
    primary = {}
    for day in days:
        if day in hard_days:
            primary[day] = hard_sessions[hard_days.index(day) % len(hard_sessions)]
        elif day == long_day:
            primary[day] = long_session
        elif day in moderate_days:
            primary[day] = moderate_sessions[moderate_days.index(day) % len(moderate_sessions)]
        else:
            primary[day] = easy

    return _expand_week(primary, sessions_per_week, phase)


def _phase_quality_cap(phase: TrainingPhase, count: int) -> int:
    if phase == TrainingPhase.RECOVERY:
        return 0
    if phase == TrainingPhase.TAPER:
        return min(count, 1)
    return count


# ═══════════════════════════════════════════════════════════════════════════
# ALLOCATORS
# ═══════════════════════════════════════════════════════════════════════════

CANOVA_HARD = {
    TrainingPhase.BASE: (WorkoutType.HILL_SPRINTS, IntensityZone.HARD,
                         "Short hill sprints for neuromuscular strength"),
    TrainingPhase.BUILD: (WorkoutType.SPECIFIC_INTERVALS, IntensityZone.HARD,
                          "Specific intervals at 100-103% race pace"),
    TrainingPhase.PEAK: (WorkoutType.SPECIFIC_INTERVALS, IntensityZone.HARD,
                         "Special block: race-pace intervals with short recovery"),
    TrainingPhase.TAPER: (WorkoutType.SPECIFIC_INTERVALS, IntensityZone.HARD,
                          "Short specific intervals at race pace"),
    TrainingPhase.RECOVERY: _RECOVERY,
}

CANOVA_MODERATE = {
    TrainingPhase.BASE: [
        (WorkoutType.PROGRESSIVE_RUN, IntensityZone.MODERATE,
         "Progressive run finishing near marathon pace"),
        (WorkoutType.FUNDAMENTAL_RUN, IntensityZone.MODERATE,
         "Fundamental run at 80-85% race pace"),
    ],
    TrainingPhase.BUILD: [
        (WorkoutType.FUNDAMENTAL_RUN, IntensityZone.MODERATE,
         "Fundamental run at 85-90% race pace"),
        (WorkoutType.PROGRESSIVE_RUN, IntensityZone.MODERATE,
         "Progressive run to 95% race pace"),
    ],
    TrainingPhase.PEAK: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE,
         "Specific tempo at 95% race pace"),
        (WorkoutType.FUNDAMENTAL_RUN, IntensityZone.MODERATE,
         "Fundamental run at 90% race pace"),
    ],
    TrainingPhase.TAPER: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE,
         "Short specific tempo"),
    ],
    TrainingPhase.RECOVERY: [_RECOVERY],
}


def _allocate_canova(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """
    Canova: two quality days (Tuesday/Thursday) plus a long run.

    In BUILD and PEAK the long run becomes a long fast run with specific
    segments. Quality days beyond the HARD budget are MODERATE.
    """
    hard = hard_slot_budget(targets, sessions_per_week, phase)
    quality = 2 if sessions_per_week >= 3 else 1
    moderate = _phase_quality_cap(phase, max(0, quality - hard))

    if phase in (TrainingPhase.BUILD, TrainingPhase.PEAK):
        long_session = (WorkoutType.LONG_FAST_RUN, IntensityZone.MODERATE,
                        "Long fast run with segments at 90-95% race pace")
    else:
        long_session = _LONG

    return _layout_week(
        sessions_per_week, phase, rest_days,
        hard_count=hard,
        moderate_count=moderate,
        hard_sessions=[CANOVA_HARD[phase]],
        moderate_sessions=CANOVA_MODERATE[phase],
        long_session=long_session,
        hard_preference=[_TUE, _THU, _SAT],
        moderate_preference=[_TUE, _THU, _WED],
    )


POLARIZED_HARD = {
    TrainingPhase.BASE: (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD,
                         "4x4 min at 90-95% HRmax"),
    TrainingPhase.BUILD: (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD,
                          "5x4 min at 90-95% HRmax"),
    TrainingPhase.PEAK: (WorkoutType.SPECIFIC_INTERVALS, IntensityZone.HARD,
                         "Race-pace intervals above LT2"),
    TrainingPhase.TAPER: (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD,
                          "3x3 min sharpening intervals"),
    TrainingPhase.RECOVERY: _RECOVERY,
}

_TEMPO = (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE, "Tempo run between LT1 and LT2")


def _allocate_polarized(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """Polarized: HARD intervals per targets, everything else easy."""
    hard = hard_slot_budget(targets, sessions_per_week, phase)
    moderate = _phase_quality_cap(
        phase, round_half_up(targets.moderate_percent / 100.0 * sessions_per_week))

    return _layout_week(
        sessions_per_week, phase, rest_days,
        hard_count=hard,
        moderate_count=moderate,
        hard_sessions=[POLARIZED_HARD[phase]],
        moderate_sessions=[_TEMPO],
        long_session=_LONG,
        hard_preference=[_TUE, _THU, _SAT],
        moderate_preference=[_WED, _FRI],
    )


PYRAMIDAL_MODERATE = {
    TrainingPhase.BASE: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE, "Steady tempo at marathon effort"),
        (WorkoutType.THRESHOLD_INTERVALS, IntensityZone.MODERATE, "Cruise intervals at LT2"),
    ],
    TrainingPhase.BUILD: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE, "Tempo at half-marathon effort"),
        (WorkoutType.THRESHOLD_INTERVALS, IntensityZone.MODERATE, "Threshold intervals at LT2"),
    ],
    TrainingPhase.PEAK: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE, "Race-specific tempo"),
        (WorkoutType.THRESHOLD_INTERVALS, IntensityZone.MODERATE, "Threshold intervals at LT2"),
    ],
    TrainingPhase.TAPER: [
        (WorkoutType.TEMPO_RUN, IntensityZone.MODERATE, "Short tempo"),
    ],
    TrainingPhase.RECOVERY: [_RECOVERY],
}

PYRAMIDAL_HARD = {
    TrainingPhase.BASE: (WorkoutType.HILL_SPRINTS, IntensityZone.HARD, "Short hill repeats"),
    TrainingPhase.BUILD: (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD, "VO2max intervals"),
    TrainingPhase.PEAK: (WorkoutType.SPECIFIC_INTERVALS, IntensityZone.HARD, "Race-pace intervals"),
    TrainingPhase.TAPER: (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD, "Short sharpening intervals"),
    TrainingPhase.RECOVERY: _RECOVERY,
}


def _allocate_pyramidal(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """Pyramidal: one moderate quality session up to 5 per week, two above."""
    hard = hard_slot_budget(targets, sessions_per_week, phase)
    moderate = _phase_quality_cap(phase, 1 if sessions_per_week <= 5 else 2)

    return _layout_week(
        sessions_per_week, phase, rest_days,
        hard_count=hard,
        moderate_count=moderate,
        hard_sessions=[PYRAMIDAL_HARD[phase]],
        moderate_sessions=PYRAMIDAL_MODERATE[phase],
        long_session=_LONG,
        hard_preference=[_THU, _TUE, _SAT],
        moderate_preference=[_TUE, _THU, _WED],
    )


_THRESHOLD = (WorkoutType.THRESHOLD_INTERVALS, IntensityZone.MODERATE,
              "Lactate-controlled threshold intervals (2-3 mmol/L)")
_HILLS = (WorkoutType.HILL_SPRINTS, IntensityZone.HARD, "Short hill sprints")


def _allocate_norwegian_singles(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """
    Norwegian singles: threshold on Tuesday and Thursday.

    A third threshold session on Saturday is added in BUILD and PEAK when
    at least six sessions are planned.
    """
    hard = hard_slot_budget(targets, sessions_per_week, phase)
    threshold = 2
    if sessions_per_week >= 6 and phase in (TrainingPhase.BUILD, TrainingPhase.PEAK):
        threshold = 3

    return _layout_week(
        sessions_per_week, phase, rest_days,
        hard_count=hard,
        moderate_count=_phase_quality_cap(phase, threshold),
        hard_sessions=[_HILLS],
        moderate_sessions=[_THRESHOLD],
        long_session=_LONG,
        hard_preference=[_SAT, _FRI, _MON],
        moderate_preference=[_TUE, _THU, _SAT],
    )


# (day, role) in the order sessions are added as the count grows
NORWEGIAN_DOUBLES_TEMPLATE = [
    (_MON, 'threshold'), (_MON, 'threshold'),
    (_WED, 'threshold'), (_WED, 'threshold'),
    (_SUN, 'long'),
    (_TUE, 'easy'), (_THU, 'easy'), (_SAT, 'easy'), (_FRI, 'easy'),
    (_TUE, 'easy'), (_THU, 'easy'), (_SAT, 'easy'), (_FRI, 'easy'),
    (_SUN, 'easy'),
]


def _allocate_norwegian_doubles(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """
    Norwegian doubles: AM and PM threshold on Monday and Wednesday.

    Sessions are taken from a fixed template in priority order. In TAPER
    only Monday keeps its threshold pair; RECOVERY has none. HARD slots
    (hill sprints) go on single-session easy days.

    Raises:
        ValueError: If rest days remove too many template sessions
    """
    rest = set(rest_days or [])
    template = [(d, r) for d, r in NORWEGIAN_DOUBLES_TEMPLATE if d not in rest]
    if sessions_per_week > len(template):
        raise ValueError(
            f"{sessions_per_week} sessions do not fit the doubles week "
            f"with rest days {sorted(d.name for d in rest)}"
        )
    chosen = template[:sessions_per_week]

    per_day: Dict[DayOfWeek, List[str]] = {}
    for day, role in chosen:
        per_day.setdefault(day, []).append(role)

    threshold_days = [d for d in (_MON, _WED) if 'threshold' in per_day.get(d, [])]
    if phase == TrainingPhase.TAPER:
        threshold_days = threshold_days[:1]
    elif phase == TrainingPhase.RECOVERY:
        threshold_days = []

    single_easy = [d for d, roles in per_day.items() if roles == ['easy']]
    hard_days = select_spaced_days(
        single_easy,
        hard_slot_budget(targets, sessions_per_week, phase),
        [_SAT, _FRI, _TUE, _THU],
    )

    easy = _RECOVERY if phase == TrainingPhase.RECOVERY else _EASY
    slots = []
    for day, roles in per_day.items():
        timings = [SessionOfDay.SINGLE] if len(roles) == 1 else [SessionOfDay.AM, SessionOfDay.PM]
        for role, timing in zip(roles, timings):
            if role == 'threshold' and day in threshold_days:
                session = _THRESHOLD
            elif role == 'long':
                session = _LONG
            elif day in hard_days:
                session = _HILLS
            elif timing == SessionOfDay.PM:
                session = _RECOVERY
            else:
                session = easy
            slots.append(_slot(day, session, phase, timing))

    return _order_slots(slots)


_GENERIC_HARD = (WorkoutType.VO2MAX_INTERVALS, IntensityZone.HARD, "High-intensity intervals above LT2")


def _allocate_default(
    sessions_per_week: int,
    phase: TrainingPhase,
    targets: IntensityTargets,
    rest_days: Optional[Sequence[DayOfWeek]] = None
) -> List[WorkoutSlot]:
    """Generic allocation: HARD and MODERATE slot counts straight from targets."""
    hard = hard_slot_budget(targets, sessions_per_week, phase)
    moderate = _phase_quality_cap(
        phase, round_half_up(targets.moderate_percent / 100.0 * sessions_per_week))

    return _layout_week(
        sessions_per_week, phase, rest_days,
        hard_count=hard,
        moderate_count=moderate,
        hard_sessions=[_GENERIC_HARD],
        moderate_sessions=[_TEMPO],
        long_session=_LONG,
        hard_preference=[_TUE, _THU, _SAT],
        moderate_preference=[_WED, _FRI, _MON],
    )


# ═══════════════════════════════════════════════════════════════════════════
# MAIN ENTRY
# ═══════════════════════════════════════════════════════════════════════════

def plan_weekly_distribution(
    config: MethodologyConfig,
    sessions_per_week: int,
    phase: TrainingPhase
) -> WeeklyDistribution:
    """
    Plan one week of sessions for a methodology.

    Args:
        config: Methodology, optional target override and rest days
        sessions_per_week: Training sessions to plan (1-14)
        phase: Current macrocycle phase

    Returns:
        WeeklyDistribution with exactly sessions_per_week slots

    Raises:
        ValueError: If the session count is out of range or cannot fit
            around the rest days
    """
    if not MIN_SESSIONS <= sessions_per_week <= MAX_SESSIONS:
        raise ValueError(
            f"sessions_per_week must be between {MIN_SESSIONS} and "
            f"{MAX_SESSIONS}, got {sessions_per_week}"
        )

    targets, assumed = fill_default_targets(config)
    rest = config.rest_days

    if config.type == MethodologyType.CANOVA:
        slots = _allocate_canova(sessions_per_week, phase, targets, rest)
    elif config.type == MethodologyType.POLARIZED:
        slots = _allocate_polarized(sessions_per_week, phase, targets, rest)
    elif config.type == MethodologyType.NORWEGIAN_DOUBLES:
        slots = _allocate_norwegian_doubles(sessions_per_week, phase, targets, rest)
    elif config.type == MethodologyType.NORWEGIAN_SINGLES:
        slots = _allocate_norwegian_singles(sessions_per_week, phase, targets, rest)
    elif config.type == MethodologyType.PYRAMIDAL:
        slots = _allocate_pyramidal(sessions_per_week, phase, targets, rest)
    elif config.type == MethodologyType.DEFAULT:
        slots = _allocate_default(sessions_per_week, phase, targets, rest)
    else:
        raise ValueError(f"Unknown methodology: {config.type}")

    used = {s.day for s in slots}
    notes = []
    if assumed:
        notes.append(f"Using default {targets.label} targets")

    budget = hard_slot_budget(targets, sessions_per_week, phase)
    placed = sum(1 for s in slots if s.zone == IntensityZone.HARD)
    if placed < budget:
        notes.append(
            f"Only {placed} of {budget} hard sessions fit without back-to-back hard days"
        )

    logger.debug(
        "Planned %s %s week: %d sessions, %d hard",
        config.type.value, phase.value, len(slots), placed,
    )

    return WeeklyDistribution(
        slots=slots,
        rest_days=[d for d in DayOfWeek if d not in used],
        methodology=config.type,
        phase=phase,
        targets=targets,
        target_hard_slots=budget,
        notes=notes,
    )


if __name__ == '__main__':
    print("=== Workout Distribution Demo ===\n")

    for methodology in MethodologyType:
        week = plan_weekly_distribution(
            MethodologyConfig(methodology), 7, TrainingPhase.BUILD)
        print(f"{methodology.value} ({week.targets.label}):")
        for slot in week.slots:
            print(f"  {slot.day.name[:3]} {slot.session_of_day.value:6s} "
                  f"{slot.zone.value:8s} {slot.workout_type.value} "
                  f"({slot.duration_minutes:.0f} min)")
        print(f"  Hard fraction: {week.hard_fraction:.0%}\n")
