"""
Training science engine: threshold detection and training prescription.

This package provides pure, synchronous computations for:
- Curve fitting (linear, cubic, perpendicular distance)
- Field test analysis (five protocols)
- Lactate threshold extraction (D-max, modified D-max)
- Load-velocity profiling for velocity-based training
- Intensity distribution targets
- Methodology eligibility (Norwegian doubles/singles)
- Weekly workout distribution

No function performs I/O; training history is injected by the caller.
"""

# Configuration
from .config import (
    FLOAT_TOLERANCE,
    EngineParams,
)

from .confidence import (
    ConfidenceLevel,
    score_to_confidence,
)

# Curve fitting
from .curve_fitting import (
    LinearFit,
    CubicFit,
    calculate_r_squared,
    linear_regression,
    polynomial_regression_3,
    perpendicular_distance,
    find_max_perpendicular_distance,
    interpolate_linear,
)

# Field tests
from .field_test_results import (
    FieldTestType,
    FieldTestValidationError,
    ValidationSummary,
    ThresholdEstimate,
    FieldTestResult,
    format_pace,
)

from .field_tests import (
    EnvironmentalConditions,
    ThirtyMinuteTTInput,
    HRDriftInput,
    CriticalVelocityTrial,
    CriticalVelocityInput,
    TwentyMinuteTTInput,
    RaceInput,
    RaceDistance,
    AthleteLevel,
    HRDriftAssessment,
    analyze_thirty_minute_tt,
    analyze_hr_drift,
    analyze_critical_velocity,
    analyze_twenty_minute_tt,
    analyze_race_result,
    classify_hr_drift,
    parse_field_test_input,
    analyze_field_test,
)

# Lactate thresholds
from .dmax import (
    ThresholdMethod,
    LactateStage,
    Threshold,
    LactateCurveResult,
    calculate_dmax,
    calculate_modified_dmax,
    find_lt1,
    fit_lactate_curve,
)

# Load-velocity
from .load_velocity import (
    LoadVelocityDataPoint,
    LoadVelocityProfile,
    VelocityTrend,
    build_load_velocity_profile,
    check_velocity_loss,
    calculate_velocity_trend,
    recommend_vbt_load,
)

# Intensity targets
from .intensity_targets import (
    IntensityMethodology,
    IntensityTargets,
    validate_targets,
    normalize_targets,
    resolve_intensity_targets,
    compare_to_targets,
    recommend_targets,
)

# Eligibility
from .eligibility import (
    EligibilityMethodology,
    RequirementType,
    TrainingLoadEntry,
    AthleteTrainingContext,
    MethodologyEligibility,
    calculate_trailing_weekly_volume,
    validate_norwegian_eligibility,
)

# Workout distribution
from .workout_distribution import (
    MethodologyType,
    TrainingPhase,
    IntensityZone,
    WorkoutType,
    DayOfWeek,
    MethodologyConfig,
    WorkoutSlot,
    WeeklyDistribution,
    plan_weekly_distribution,
)

__all__ = [
    # Config
    'FLOAT_TOLERANCE',
    'EngineParams',
    'ConfidenceLevel',
    'score_to_confidence',
    # Curve fitting
    'LinearFit',
    'CubicFit',
    'calculate_r_squared',
    'linear_regression',
    'polynomial_regression_3',
    'perpendicular_distance',
    'find_max_perpendicular_distance',
    'interpolate_linear',
    # Field tests
    'FieldTestType',
    'FieldTestValidationError',
    'ValidationSummary',
    'ThresholdEstimate',
    'FieldTestResult',
    'format_pace',
    'EnvironmentalConditions',
    'ThirtyMinuteTTInput',
    'HRDriftInput',
    'CriticalVelocityTrial',
    'CriticalVelocityInput',
    'TwentyMinuteTTInput',
    'RaceInput',
    'RaceDistance',
    'AthleteLevel',
    'HRDriftAssessment',
    'analyze_thirty_minute_tt',
    'analyze_hr_drift',
    'analyze_critical_velocity',
    'analyze_twenty_minute_tt',
    'analyze_race_result',
    'classify_hr_drift',
    'parse_field_test_input',
    'analyze_field_test',
    # Lactate
    'ThresholdMethod',
    'LactateStage',
    'Threshold',
    'LactateCurveResult',
    'calculate_dmax',
    'calculate_modified_dmax',
    'find_lt1',
    'fit_lactate_curve',
    # Load-velocity
    'LoadVelocityDataPoint',
    'LoadVelocityProfile',
    'VelocityTrend',
    'build_load_velocity_profile',
    'check_velocity_loss',
    'calculate_velocity_trend',
    'recommend_vbt_load',
    # Intensity
    'IntensityMethodology',
    'IntensityTargets',
    'validate_targets',
    'normalize_targets',
    'resolve_intensity_targets',
    'compare_to_targets',
    'recommend_targets',
    # Eligibility
    'EligibilityMethodology',
    'RequirementType',
    'TrainingLoadEntry',
    'AthleteTrainingContext',
    'MethodologyEligibility',
    'calculate_trailing_weekly_volume',
    'validate_norwegian_eligibility',
    # Distribution
    'MethodologyType',
    'TrainingPhase',
    'IntensityZone',
    'WorkoutType',
    'DayOfWeek',
    'MethodologyConfig',
    'WorkoutSlot',
    'WeeklyDistribution',
    'plan_weekly_distribution',
]
