"""
Overload Analytics — Engine report
Run manually: python -m overload.report snapshot.json [--json]
"""
import json
import sys
from dataclasses import asdict

from overload.analytics import analyze_all, progress_table
from overload.deload import deload_context, detect_deload_need
from overload.history import snapshot_from_dict
from overload.models import TrainingSnapshot
from overload.progression import personalized_progression, progression_context
from overload.suggestions import local_suggestions


def _progression_dict(config) -> dict:
    return {
        "baseline": round(config.baseline, 2),
        "increment": round(config.increment, 2),
        "composite_multiplier": round(config.composite_multiplier, 3),
        "confidence": config.confidence,
        "factors": [asdict(f) for f in config.factors],
    }


def _deload_dict(rec) -> dict:
    return {
        "should_deload": rec.should_deload,
        "urgency": rec.urgency,
        "reasons": list(rec.reasons),
        "triggered_by": sorted(rec.triggered_by),
        "suggested_action": rec.suggested_action,
    }


def engine_report(snapshot: TrainingSnapshot, template_exercises=None) -> dict:
    """
    Everything the engine produces for one snapshot, as plain data:
    1. Progress table for every strength exercise
    2. Personalized progression per exercise
    3. Whole-program deload recommendation
    4. Local suggestions for a template, when one is given
    """
    analyses = analyze_all(
        snapshot.sessions, snapshot.custom_exercises,
        now=snapshot.as_of, target_reps=dict(snapshot.target_reps),
    )

    progression = {}
    for ex_id, analysis in analyses.items():
        ctx = progression_context(snapshot, ex_id, analysis=analysis)
        progression[ex_id] = _progression_dict(personalized_progression(ctx))

    ctx = deload_context(snapshot)
    deload = _deload_dict(detect_deload_need(ctx))
    deload["weeks_since_last_deload"] = ctx.weeks_since_last_deload

    suggestions = []
    if template_exercises:
        suggestions = [asdict(s) for s in local_suggestions(snapshot, template_exercises)]

    return {
        "as_of": snapshot.as_of.isoformat(),
        "progress": progress_table(analyses).to_dict(orient="records"),
        "progression": progression,
        "deload": deload,
        "suggestions": suggestions,
    }


def print_report(report: dict, unit: str) -> None:
    print(f"\n📊 Progress ({len(report['progress'])} exercises):")
    if not report["progress"]:
        print("   No strength history yet.")
    for row in report["progress"]:
        print(f"   {row['exercise']}: {row['status']} | {row['trend_pct']:+.2f}%/wk | last max {row['last_max']}{unit}")
        if row.get("plateau_signals"):
            print(f"      ⚠️ {row['plateau_signals']} plateau signal(s) in recent sessions")

    print("\n📈 Next-session progression:")
    for ex_id, cfg in report["progression"].items():
        print(
            f"   {ex_id}: baseline {cfg['baseline']}{unit} + {cfg['increment']}{unit} "
            f"× {cfg['composite_multiplier']} ({cfg['confidence']} confidence)"
        )
        for f in cfg["factors"]:
            print(f"      • {f['name']}: {f['reasoning']}")

    deload = report["deload"]
    print(f"\n🛌 Deload ({deload['weeks_since_last_deload']} weeks since last):")
    if deload["should_deload"]:
        print(f"   ⚠️  {deload['urgency'].upper()}: {deload['suggested_action']}")
        for reason in deload["reasons"]:
            print(f"      • {reason}")
    else:
        print("   ✅ No deload needed.")

    if report["suggestions"]:
        print("\n🏋️ Suggestions:")
        for s in report["suggestions"]:
            print(f"   {s['exercise_id']}: {s['suggested_weight']}{unit} x{s['suggested_reps']} — {s['reasoning']}")


def run_report(path: str, as_json: bool = False) -> dict:
    """Load a snapshot document, run the engine and print the result."""
    if not as_json:
        print(f"🔄 Overload report — {path}")

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    snapshot = snapshot_from_dict(data)
    if not as_json:
        print(f"   {len(snapshot.sessions)} sessions as of {snapshot.as_of.isoformat()}")

    report = engine_report(snapshot, data.get("template"))
    if as_json:
        print(json.dumps(report, indent=2, default=str))
    else:
        print_report(report, snapshot.user.weight_unit)
    return report


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if not args:
        print("Usage: python -m overload.report snapshot.json [--json]")
        sys.exit(1)

    try:
        run_report(args[0], as_json="--json" in sys.argv)
    except (OSError, ValueError, KeyError, AssertionError) as e:
        print(f"\n❌ Report FAILED: {e}")
        sys.exit(1)
