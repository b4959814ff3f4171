#!/usr/bin/env python3
"""
Training Science Engine - CLI Entry Point

Usage:
    python main.py field-test <file> [--json]
    python main.py lactate <file> [--modified] [--json]
    python main.py profile <file> [--json]
    python main.py targets --hours H --sessions N [--custom E M H] [--json]
    python main.py eligibility <file> [--variant V] [--json]
    python main.py plan --methodology M --sessions N --phase P [--rest-days DAY ...]
                        [--custom E M H] [--json]
    python main.py demo

Every command accepts --params <file> (EngineParams JSON) and --verbose.
"""

import sys
import argparse
import json
import logging
from datetime import date, timedelta

from engine import (
    EngineParams,
    analyze_field_test,
    FieldTestValidationError,
    LactateStage,
    fit_lactate_curve,
    LoadVelocityDataPoint,
    build_load_velocity_profile,
    IntensityTargets,
    resolve_intensity_targets,
    EligibilityMethodology,
    TrainingLoadEntry,
    AthleteTrainingContext,
    validate_norwegian_eligibility,
    MethodologyType,
    TrainingPhase,
    MethodologyConfig,
    DayOfWeek,
    plan_weekly_distribution,
)

logger = logging.getLogger(__name__)


def load_json(path: str):
    """Read a JSON document from disk."""
    with open(path) as f:
        return json.load(f)


def load_params(path) -> EngineParams:
    """Load EngineParams from a JSON file, or defaults when no path is given."""
    if not path:
        return EngineParams()

    params = EngineParams.from_dict(load_json(path))
    ok, message = params.validate()
    if not ok:
        raise ValueError(f"Invalid engine parameters: {message}")
    return params


def emit(payload, as_json: bool, lines):
    """Print either the JSON payload or the human-readable lines."""
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        for line in lines:
            print(line)


# ═══════════════════════════════════════════════════════════════════════════
# Commands
# ═══════════════════════════════════════════════════════════════════════════

def run_field_test(data: dict, params: EngineParams, as_json: bool = False):
    """Analyze a field test submission ({"test_type": ..., <fields>})."""
    fields = dict(data)
    test_type = fields.pop('test_type')
    athlete_id = fields.pop('athlete_id', None)

    result = analyze_field_test(test_type, fields, params)

    lines = [f"Field test: {result.test_type.value}"]
    if athlete_id:
        lines.append(f"  Athlete: {athlete_id}")
    for name, estimate in (('LT1', result.lt1), ('LT2', result.lt2)):
        if estimate:
            d = estimate.to_dict()
            hr = f" @ {d['heart_rate']} bpm" if d['heart_rate'] else ""
            lines.append(f"  {name}: {d['pace']}{hr}")
    lines.append(f"  Confidence: {result.confidence.value}")
    lines.append(f"  Valid: {result.valid}")
    for warning in result.validation.warnings:
        lines.append(f"  Warning: {warning}")
    for error in result.validation.errors:
        lines.append(f"  Error: {error}")
    for rec in result.recommendations:
        lines.append(f"  - {rec}")

    emit(result.to_dict(), as_json, lines)
    return result


def run_lactate(data: dict, params: EngineParams, modified: bool = False, as_json: bool = False):
    """Fit a lactate curve from {"stages": [{intensity, lactate, heart_rate?}]}."""
    stages = [
        LactateStage(
            intensity=float(s['intensity']),
            lactate=float(s['lactate']),
            heart_rate=s.get('heart_rate'),
        )
        for s in data['stages']
    ]
    result = fit_lactate_curve(stages, params, modified=modified)

    lines = [
        f"Lactate curve ({len(stages)} stages)",
        f"  R²: {result.r2:.3f}",
        f"  LT2: {result.lt2.intensity} @ {result.lt2.lactate} mmol/L "
        f"({result.lt2.method.value})",
    ]
    if result.lt1:
        lines.append(f"  LT1: {result.lt1.intensity} @ {result.lt1.lactate} mmol/L "
                     f"({result.lt1.method.value})")
    lines.append(f"  Confidence: {result.confidence.value}")
    for warning in result.warnings:
        lines.append(f"  Warning: {warning}")

    emit(result.to_dict(), as_json, lines)
    return result


def run_profile(data: dict, params: EngineParams, as_json: bool = False):
    """Build a load-velocity profile from {"data_points": [...], "exercise_name"?}."""
    points = [
        LoadVelocityDataPoint(load=float(p['load']), velocity=float(p['velocity']))
        for p in data['data_points']
    ]
    profile = build_load_velocity_profile(points, data.get('exercise_name'), params)

    lines = [
        f"Load-velocity profile: {profile.exercise_name or 'unnamed exercise'}",
        f"  Slope: {profile.slope:.5f} m/s per kg, R²: {profile.r_squared:.3f}",
    ]
    for velocity, load in sorted(profile.e1rm.items(), reverse=True):
        shown = f"{load:.1f} kg" if load is not None else "n/a"
        lines.append(f"  e1RM @ {velocity:.2f} m/s: {shown}")
    lines.append(f"  Valid: {profile.is_valid}")
    for issue in profile.issues:
        lines.append(f"  Issue: {issue}")

    emit(profile.to_dict(), as_json, lines)
    return profile


def run_targets(hours: float, sessions: int, custom=None, as_json: bool = False):
    """Resolve intensity targets for a training volume and frequency."""
    custom_targets = IntensityTargets(*custom) if custom else None
    targets = resolve_intensity_targets(hours, sessions, custom_targets)

    lines = [
        f"Intensity targets for {hours:g} h/week, {sessions} sessions: {targets.label}",
        f"  Easy:     {targets.easy_percent:.1f}%",
        f"  Moderate: {targets.moderate_percent:.1f}%",
        f"  Hard:     {targets.hard_percent:.1f}%",
    ]
    emit(targets.to_dict(), as_json, lines)
    return targets


def run_eligibility(data: dict, params: EngineParams, variant: str, as_json: bool = False):
    """
    Check Norwegian eligibility.

    The file holds the athlete context and its training log:
    {"athlete_id", "training_age_years", "weekly_hours", "sessions_per_week",
     "has_required_equipment", "as_of", "history": [{date, distance_km}]}
    """
    history = [
        TrainingLoadEntry(
            date=date.fromisoformat(e['date']),
            distance_km=float(e['distance_km']),
            duration_min=float(e.get('duration_min', 0.0)),
        )
        for e in data.get('history', [])
    ]
    context = AthleteTrainingContext(
        weekly_hours=float(data.get('weekly_hours', 0.0)),
        sessions_per_week=int(data.get('sessions_per_week', 0)),
        training_age_years=float(data['training_age_years']),
        has_required_equipment=bool(data.get('has_required_equipment', False)),
    )
    as_of = date.fromisoformat(data['as_of']) if data.get('as_of') else None

    result = validate_norwegian_eligibility(
        data['athlete_id'],
        lambda athlete_id: history,
        context,
        as_of=as_of,
        variant=EligibilityMethodology(variant),
        params=params,
    )

    lines = [
        f"{result.methodology.value} eligibility for {result.athlete_id}: "
        f"{'ELIGIBLE' if result.eligible else 'NOT ELIGIBLE'}",
        f"  Trailing volume: {result.average_weekly_km:.1f} km/week",
    ]
    for check in result.requirements:
        mark = "ok " if check.met else "FAIL"
        lines.append(f"  [{mark}] {check.requirement.value}: {check.message}")
    lines.append("  Transition plan:")
    for phase in result.transition_plan:
        lines.append(f"    {phase.phase}. {phase.name} ({phase.weeks}): {phase.volume_target}")
    for rec in result.recommendations:
        lines.append(f"  - {rec}")

    emit(result.to_dict(), as_json, lines)
    return result


def run_plan(methodology: str, sessions: int, phase: str, rest_days=None,
             custom=None, as_json: bool = False):
    """Plan one week for a methodology, optionally with blocked days and a custom split."""
    config = MethodologyConfig(
        MethodologyType(methodology),
        IntensityTargets(*custom) if custom else None,
        [DayOfWeek[d.upper()] for d in rest_days] if rest_days else None,
    )
    week = plan_weekly_distribution(config, sessions, TrainingPhase(phase))

    lines = [f"{week.methodology.value} {week.phase.value} week, {week.session_count} sessions"]
    for slot in week.slots:
        lines.append(
            f"  {slot.day.name.capitalize():10s} {slot.session_of_day.value:6s} "
            f"{slot.zone.value:8s} {slot.duration_minutes:4.0f} min  {slot.description}"
        )
    if week.rest_days:
        lines.append("  Rest: " + ", ".join(d.name.capitalize() for d in week.rest_days))
    lines.append(f"  Hard fraction: {week.hard_fraction:.0%}")
    for note in week.notes:
        lines.append(f"  Note: {note}")

    emit(week.to_dict(), as_json, lines)
    return week


def run_demo(params: EngineParams):
    """Run every component on built-in sample data."""
    print("=" * 60)
    print("TRAINING SCIENCE ENGINE DEMO")
    print("=" * 60)

    print("\n[Field test]")
    run_field_test({
        'test_type': 'THIRTY_MIN_TT',
        'distance_m': 7800,
        'average_hr': 171,
        'max_hr': 188,
        'split_5min_m': [1290, 1300, 1300, 1305, 1300, 1305],
    }, params)

    print("\n[Lactate]")
    run_lactate({'stages': [
        {'intensity': 10, 'lactate': 1.1, 'heart_rate': 128},
        {'intensity': 11, 'lactate': 1.2, 'heart_rate': 136},
        {'intensity': 12, 'lactate': 1.5, 'heart_rate': 144},
        {'intensity': 13, 'lactate': 2.0, 'heart_rate': 152},
        {'intensity': 14, 'lactate': 2.9, 'heart_rate': 160},
        {'intensity': 15, 'lactate': 4.4, 'heart_rate': 168},
        {'intensity': 16, 'lactate': 6.8, 'heart_rate': 176},
    ]}, params)

    print("\n[Load-velocity]")
    run_profile({'exercise_name': 'Back squat', 'data_points': [
        {'load': load, 'velocity': round(-0.01 * load + 3.0, 3)}
        for load in (100, 140, 180, 220, 250)
    ]}, params)

    print("\n[Intensity targets]")
    run_targets(7.0, 5)

    print("\n[Eligibility]")
    today = date.today()
    run_eligibility({
        'athlete_id': 'demo-athlete',
        'training_age_years': 3,
        'has_required_equipment': True,
        'as_of': today.isoformat(),
        'history': [
            {'date': (today - timedelta(days=d)).isoformat(), 'distance_km': 13.0}
            for d in range(28) if d % 7 < 5
        ],
    }, params, EligibilityMethodology.NORWEGIAN_DOUBLES.value)

    print("\n[Weekly plan]")
    run_plan(MethodologyType.POLARIZED.value, 6, TrainingPhase.BUILD.value)


def main():
    parser = argparse.ArgumentParser(description='Training Science Engine')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    parser.add_argument('--params', help='EngineParams JSON file')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Field test command
    ft_parser = subparsers.add_parser('field-test', help='Analyze a field test')
    ft_parser.add_argument('file', help='Submission JSON')
    ft_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Lactate command
    lac_parser = subparsers.add_parser('lactate', help='Fit a lactate curve')
    lac_parser.add_argument('file', help='Stages JSON')
    lac_parser.add_argument('--modified', action='store_true', help='Use modified D-max')
    lac_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Profile command
    lv_parser = subparsers.add_parser('profile', help='Build a load-velocity profile')
    lv_parser.add_argument('file', help='Data points JSON')
    lv_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Targets command
    tg_parser = subparsers.add_parser('targets', help='Resolve intensity targets')
    tg_parser.add_argument('--hours', type=float, required=True, help='Weekly hours')
    tg_parser.add_argument('--sessions', type=int, required=True, help='Sessions per week')
    tg_parser.add_argument('--custom', type=float, nargs=3, metavar=('EASY', 'MOD', 'HARD'),
                           help='Custom split in percent')
    tg_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Eligibility command
    el_parser = subparsers.add_parser('eligibility', help='Check Norwegian eligibility')
    el_parser.add_argument('file', help='Athlete JSON')
    el_parser.add_argument('--variant', default=EligibilityMethodology.NORWEGIAN_DOUBLES.value,
                           choices=[m.value for m in EligibilityMethodology])
    el_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Plan command
    pl_parser = subparsers.add_parser('plan', help='Plan a weekly distribution')
    pl_parser.add_argument('--methodology', default=MethodologyType.POLARIZED.value,
                           choices=[m.value for m in MethodologyType])
    pl_parser.add_argument('--sessions', type=int, default=5, help='Sessions per week')
    pl_parser.add_argument('--phase', default=TrainingPhase.BASE.value,
                           choices=[p.value for p in TrainingPhase])
    pl_parser.add_argument('--rest-days', nargs='+', type=str.upper, metavar='DAY',
                           choices=[d.name for d in DayOfWeek], help='Days the athlete cannot train')
    pl_parser.add_argument('--custom', type=float, nargs=3, metavar=('EASY', 'MOD', 'HARD'),
                           help='Custom split in percent')
    pl_parser.add_argument('--json', action='store_true', help='Print JSON')

    # Demo command
    subparsers.add_parser('demo', help='Run all components on sample data')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        params = load_params(args.params)

        if args.command == 'field-test':
            run_field_test(load_json(args.file), params, args.json)
        elif args.command == 'lactate':
            run_lactate(load_json(args.file), params, args.modified, args.json)
        elif args.command == 'profile':
            run_profile(load_json(args.file), params, args.json)
        elif args.command == 'targets':
            run_targets(args.hours, args.sessions, args.custom, args.json)
        elif args.command == 'eligibility':
            run_eligibility(load_json(args.file), params, args.variant, args.json)
        elif args.command == 'plan':
            run_plan(args.methodology, args.sessions, args.phase,
                     args.rest_days, args.custom, args.json)
        elif args.command == 'demo':
            run_demo(params)
        else:
            parser.print_help()
    except FieldTestValidationError as e:
        logger.error("Rejected %s submission", e.test_type.value)
        for error in e.errors:
            print(f"  {error}", file=sys.stderr)
        return 2
    except (ValueError, KeyError) as e:
        logger.error("Invalid input: %s", e)
        return 2

    return 0


if __name__ == '__main__':
    sys.exit(main())
