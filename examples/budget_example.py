"""
Budget Examples - demonstrations of estimation and tree reconciliation

This example demonstrates:
- Creating a client and a budget from a story/activity tree
- How complexity multipliers compound (activity, story, project)
- Editing a budget by submitting the complete desired tree
- Idempotent resubmission
- The plain-data proposal handed to a renderer
"""

import tempfile
from datetime import date
from pathlib import Path

from effort_budget import EffortBudget
from effort_budget.kernel.errors import ClientHasBudgets

USER = "user-demo"


def example_1_create_and_estimate():
    """
    Example 1: Create and Estimate

    Demonstrates:
    - Registering a client
    - Creating a budget with nested stories and activities
    - Reading the derived totals
    """
    print("\n=== Example 1: Create and Estimate ===\n")

    with tempfile.TemporaryDirectory() as tmpdir:
        eb = EffortBudget(Path(tmpdir) / "example1.db")

        client = eb.create_client(USER, name="Acme Corp", email="ops@acme.test")
        print(f"✓ Created client: {client.name}")

        budget = eb.create_budget(
            USER,
            client_id=client.client_id,
            title="Customer portal",
            hourly_rate=100,
            test_percentage=30,
            available_hours=6,
            stories=[
                {
                    "title": "Login",
                    "complexity_factor": 2,
                    "activities": [{"title": "Form", "hours": 10, "complexity_factor": 1.5}],
                },
                {
                    "title": "Profile",
                    "activities": [
                        {"title": "Avatar upload", "hours": 4},
                        {"title": "Password change", "hours": 3},
                    ],
                },
            ],
        )

        print(f"✓ Created budget: {budget.title}")
        for story in budget.stories:
            print(f"  {story.title}: {story.story_total():.1f}h")
        print(f"\n  Total hours: {budget.total_hours:.1f}h")
        print(f"  Test hours: {budget.total_test_hours:.1f}h")
        print(f"  Total value: {budget.total_value:.2f}")
        print(f"  Estimated days: {budget.estimated_days}")


def example_2_edit_tree():
    """
    Example 2: Editing the Tree

    Demonstrates:
    - Keeping nodes by resubmitting their ids
    - Adding nodes without ids
    - Dropping nodes by leaving them out
    - Project complexity applied on update
    """
    print("\n=== Example 2: Editing the Tree ===\n")

    with tempfile.TemporaryDirectory() as tmpdir:
        eb = EffortBudget(Path(tmpdir) / "example2.db")
        client = eb.create_client(USER, name="Globex")

        budget = eb.create_budget(
            USER,
            client_id=client.client_id,
            title="Data migration",
            hourly_rate=120,
            test_percentage=20,
            available_hours=6,
            stories=[
                {"title": "Extract", "activities": [{"title": "Dump tables", "hours": 8}]},
                {"title": "Load", "activities": [{"title": "Bulk insert", "hours": 6}]},
            ],
        )
        print(f"Before: {[s.title for s in budget.stories]} - {budget.total_value:.2f}")

        extract = budget.stories[0]
        result = eb.update_budget(
            USER,
            budget.budget_id,
            client_id=client.client_id,
            title=budget.title,
            hourly_rate=budget.hourly_rate,
            test_percentage=budget.test_percentage,
            available_hours=budget.available_hours,
            project_complexity_factor=1.5,
            stories=[
                {
                    "id": extract.story_id,
                    "title": extract.title,
                    "activities": [
                        {
                            "id": extract.activities[0].activity_id,
                            "title": "Dump tables",
                            "hours": 10,
                        }
                    ],
                },
                {"title": "Transform", "activities": [{"title": "Map schemas", "hours": 12}]},
            ],
        )

        stats = result.stats
        print(f"After:  {[s.title for s in result.budget.stories]} - {result.budget.total_value:.2f}")
        print(
            f"  Stories: +{stats.stories_created} ~{stats.stories_updated} -{stats.stories_deleted}"
        )
        print(
            f"  Activities: +{stats.activities_created} ~{stats.activities_updated} "
            f"-{stats.activities_deleted}"
        )

        # Resubmitting what is stored changes nothing structurally
        current = result.budget
        again = eb.update_budget(
            USER,
            budget.budget_id,
            client_id=current.client_id,
            title=current.title,
            hourly_rate=current.hourly_rate,
            test_percentage=current.test_percentage,
            available_hours=current.available_hours,
            project_complexity_factor=current.project_complexity_factor,
            stories=[
                {
                    "id": s.story_id,
                    "title": s.title,
                    "activities": [
                        {"id": a.activity_id, "title": a.title, "hours": a.hours}
                        for a in s.activities
                    ],
                }
                for s in current.stories
            ],
        )
        print(f"\n✓ Resubmission structural changes: {again.stats.structural_changes}")


def example_3_proposal_and_client_guard():
    """
    Example 3: Proposal and Client Guard

    Demonstrates:
    - Building the proposal summary with a delivery date
    - Clients cannot be deleted while budgets reference them
    """
    print("\n=== Example 3: Proposal and Client Guard ===\n")

    with tempfile.TemporaryDirectory() as tmpdir:
        eb = EffortBudget(Path(tmpdir) / "example3.db")
        client = eb.create_client(USER, name="Initech", logo_url="https://cdn.test/initech.png")
        budget = eb.create_budget(
            USER,
            client_id=client.client_id,
            title="TPS reports",
            hourly_rate=90,
            test_percentage=25,
            available_hours=6,
            stories=[{"title": "Cover sheets", "activities": [{"title": "Template", "hours": 30}]}],
        )

        proposal = eb.build_proposal(USER, budget.budget_id, start=date(2025, 1, 15))
        print(f"Proposal for {proposal.client_name}: {proposal.title}")
        print(f"  Value: {proposal.total_value:.2f}")
        print(f"  Duration: {proposal.duration_label}")
        print(f"  Delivery: {proposal.delivery_date}")

        try:
            eb.delete_client(USER, client.client_id)
        except ClientHasBudgets as e:
            print(f"\n✓ Client delete blocked: {e}")

        eb.delete_budget(USER, budget.budget_id)
        eb.delete_client(USER, client.client_id)
        print("✓ Client deleted after its budget")


if __name__ == "__main__":
    print("=" * 70)
    print("Effort Budget - Examples")
    print("=" * 70)

    example_1_create_and_estimate()
    example_2_edit_tree()
    example_3_proposal_and_client_guard()

    print("\n" + "=" * 70)
    print("✓ All examples completed successfully!")
    print("=" * 70)
