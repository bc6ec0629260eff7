#!/usr/bin/env python3
"""
Performance Benchmark for Effort Budget

Measures the two hot paths:

- Calculator: pure estimation over a large tree
- Reconciliation: full-tree update of a persisted budget in one transaction

Run:
    python scripts/performance_benchmark.py
"""

import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from effort_budget import EffortBudget
from effort_budget.budget.calculator import calculate_estimate
from effort_budget.budget.commands import ActivityInput, StoryInput
from effort_budget.kernel.time import TestTimeProvider

USER = "bench-user"


def build_tree(stories: int, activities: int) -> list[dict]:
    return [
        {
            "title": f"Story {s}",
            "complexity_factor": (1, 1.2, 1.5, 2)[s % 4],
            "activities": [
                {"title": f"Activity {s}.{a}", "hours": 1 + a % 8} for a in range(activities)
            ],
        }
        for s in range(stories)
    ]


def benchmark_calculator() -> dict:
    """Benchmark estimation over 200 stories x 50 activities"""
    print("\n=== Benchmark: Calculator ===")

    stories = [StoryInput.model_validate(s) for s in build_tree(200, 50)]
    runs = 100

    start_time = time.time()
    for _ in range(runs):
        calculate_estimate(stories, hourly_rate=100, test_percentage=30, available_hours=6)
    elapsed = time.time() - start_time

    per_run_ms = elapsed * 1000 / runs
    print(f"  Nodes per run: {200 * 50}")
    print(f"  Average: {per_run_ms:.2f}ms")
    print("  Target: <50ms")
    print(f"  Status: {'✓ PASS' if per_run_ms < 50 else '✗ FAIL'}")

    return {"test": "calculator", "per_run_ms": per_run_ms, "pass": per_run_ms < 50}


def benchmark_reconcile() -> dict:
    """Benchmark a mixed update of a 50 x 20 tree"""
    print("\n=== Benchmark: Reconciliation ===")

    with tempfile.TemporaryDirectory() as tmpdir:
        time_provider = TestTimeProvider(
            datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc), auto_advance_ms=1
        )
        eb = EffortBudget(Path(tmpdir) / "bench.db", time_provider=time_provider)
        client = eb.create_client(USER, name="Bench")
        budget = eb.create_budget(
            USER,
            client_id=client.client_id,
            title="Bench",
            hourly_rate=100,
            test_percentage=30,
            available_hours=6,
            stories=build_tree(50, 20),
        )

        # Keep every other story, add ten new ones
        submitted = [
            StoryInput(
                id=s.story_id,
                title=s.title,
                complexity_factor=s.complexity_factor,
                activities=[
                    ActivityInput(id=a.activity_id, title=a.title, hours=a.hours + 1)
                    for a in s.activities
                ],
            )
            for s in budget.stories[::2]
        ] + [StoryInput.model_validate(s) for s in build_tree(10, 20)]

        start_time = time.time()
        result = eb.update_budget(
            USER,
            budget.budget_id,
            client_id=client.client_id,
            title="Bench",
            hourly_rate=100,
            test_percentage=30,
            available_hours=6,
            project_complexity_factor=1,
            stories=submitted,
        )
        elapsed_ms = (time.time() - start_time) * 1000

    stats = result.stats
    print(
        f"  Stories: +{stats.stories_created} ~{stats.stories_updated} -{stats.stories_deleted}"
    )
    print(f"  Activities: +{stats.activities_created} ~{stats.activities_updated}")
    print(f"  Time: {elapsed_ms:.1f}ms")
    print("  Target: <500ms")
    print(f"  Status: {'✓ PASS' if elapsed_ms < 500 else '✗ FAIL'}")

    return {"test": "reconcile", "elapsed_ms": elapsed_ms, "pass": elapsed_ms < 500}


def main() -> None:
    """Run all benchmarks"""
    print("\n" + "=" * 70)
    print("  Effort Budget - Performance Benchmark Suite")
    print("=" * 70)

    results = [benchmark_calculator(), benchmark_reconcile()]

    print("\n" + "=" * 70)
    print("  Summary")
    print("=" * 70)

    passed = sum(1 for r in results if r["pass"])
    for result in results:
        status = "✓ PASS" if result["pass"] else "✗ FAIL"
        print(f"  {result['test']:30s} {status}")

    print(f"\n  Tests passed: {passed}/{len(results)}")
    print("\n" + "=" * 70 + "\n")


if __name__ == "__main__":
    main()
