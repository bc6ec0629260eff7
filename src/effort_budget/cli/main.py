"""
Effort Budget CLI

Command-line interface for clients, budgets and estimation defaults.

Usage:
    effort-budget init --db budgets.db
    effort-budget client create --name "Acme" --email ops@acme.test
    effort-budget budget create --client <id> --title "Portal" --stories stories.json
    effort-budget budget update --id <budget_id> --file budget.json
    effort-budget budget show --id <budget_id>
    effort-budget budget estimate --file budget.json
    effort-budget settings show

The current user is taken from --user or EFFORT_BUDGET_USER; the database
from --db or EFFORT_BUDGET_DB.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from effort_budget.budget.calculator import calculate_estimate
from effort_budget.budget.commands import UpdateBudget
from effort_budget.budget.invariants import validate_budget_payload
from effort_budget.budget.models import Budget
from effort_budget.budget.schedule import describe_duration
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import EffortBudgetError, StoreError
from effort_budget.kernel.logging import configure_logging
from effort_budget.service import EffortBudget

configure_logging(log_level="WARNING")

app = typer.Typer(
    name="effort-budget",
    help="Effort Budget - project effort and cost estimation",
    add_completion=False,
)

client_app = typer.Typer(help="Client management commands")
budget_app = typer.Typer(help="Budget management commands")
settings_app = typer.Typer(help="Default estimation parameters")

app.add_typer(client_app, name="client")
app.add_typer(budget_app, name="budget")
app.add_typer(settings_app, name="settings")

DEFAULT_DB = Path(".effort_budget.db")

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", envvar="EFFORT_BUDGET_DB", help="Database path"),
]
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", envvar="EFFORT_BUDGET_USER", help="Current user id"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def get_service(db_path: Optional[Path] = None) -> EffortBudget:
    """Open an existing database"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'effort-budget init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    with reported_errors():
        return EffortBudget(db)


@contextmanager
def reported_errors() -> Iterator[None]:
    """
    Turn domain errors into an error line and exit code 1

    Validation, not-found, conflict and authentication errors carry
    their precise message; store failures are reported generically.
    """
    try:
        yield
    except StoreError:
        typer.echo("Error: internal error", err=True)
        raise typer.Exit(1)
    except EffortBudgetError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        typer.echo(f"Error: Cannot read JSON from {path}: {e}", err=True)
        raise typer.Exit(1)


def dump_json(model: Any) -> str:
    data = model.model_dump(mode="json") if hasattr(model, "model_dump") else model
    return json.dumps(data, indent=2, default=str)


def echo_budget(budget: Budget) -> None:
    typer.echo(f"\nBudget: {budget.budget_id}")
    typer.echo(f"  Title: {budget.title}")
    if budget.client:
        typer.echo(f"  Client: {budget.client.name}")
    typer.echo(f"  Hourly rate: {budget.hourly_rate:.2f}")
    typer.echo(f"  Test percentage: {budget.test_percentage:g}%")
    typer.echo(f"  Available hours/day: {budget.available_hours:g}")
    typer.echo(f"  Project complexity: {budget.project_complexity_factor:g}")
    typer.echo(f"  Total hours: {budget.total_hours:.1f}h")
    typer.echo(f"  Test hours: {budget.total_test_hours:.1f}h")
    typer.echo(f"  Total value: {budget.total_value:.2f}")
    typer.echo(
        f"  Estimated days: {budget.estimated_days} ({describe_duration(budget.estimated_days)})"
    )

    typer.echo(f"\n  Stories ({len(budget.stories)}):")
    for story in budget.stories:
        typer.echo(f"\n    {story.title} [x{story.complexity_factor:g}] {story.story_id}")
        for activity in story.activities:
            typer.echo(
                f"      - {activity.title}: {activity.hours:g}h "
                f"[x{activity.complexity_factor:g}] {activity.activity_id}"
            )


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(envvar="EFFORT_BUDGET_DB", help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    with reported_errors():
        EffortBudget(db)
    typer.echo(f"✓ Initialized database: {db}")


# Client commands


@client_app.command("create")
def client_create(
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[Optional[str], typer.Option("--email", help="Contact email")] = None,
    logo_url: Annotated[
        Optional[str], typer.Option("--logo-url", help="Public logo URL")
    ] = None,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Create a client"""
    service = get_service(db)
    with reported_errors():
        client = service.create_client(user, name=name, email=email, logo_url=logo_url)

    typer.echo(f"✓ Created client: {client.client_id}")
    typer.echo(f"  Name: {client.name}")
    if client.email:
        typer.echo(f"  Email: {client.email}")


@client_app.command("list")
def client_list(user: UserOption = None, db: DbOption = None) -> None:
    """List clients by name"""
    service = get_service(db)
    with reported_errors():
        clients = service.list_clients(user)

    if not clients:
        typer.echo("No clients")
        return

    typer.echo(f"Clients ({len(clients)}):")
    for client in clients:
        typer.echo(f"  {client.client_id}: {client.name}")


@client_app.command("show")
def client_show(
    client_id: Annotated[str, typer.Option("--id", help="Client ID")],
    json_output: JsonOption = False,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Show client details"""
    service = get_service(db)
    with reported_errors():
        client = service.get_client(user, client_id)

    if json_output:
        typer.echo(dump_json(client))
        return

    typer.echo(f"Client: {client.client_id}")
    typer.echo(f"  Name: {client.name}")
    typer.echo(f"  Email: {client.email or '-'}")
    typer.echo(f"  Logo: {client.logo_url or '-'}")


@client_app.command("update")
def client_update(
    client_id: Annotated[str, typer.Option("--id", help="Client ID")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[Optional[str], typer.Option("--email", help="Contact email")] = None,
    logo_url: Annotated[
        Optional[str], typer.Option("--logo-url", help="New logo URL (kept if omitted)")
    ] = None,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Update a client"""
    service = get_service(db)
    with reported_errors():
        client = service.update_client(
            user, client_id, name=name, email=email, logo_url=logo_url
        )

    typer.echo(f"✓ Updated client: {client.client_id}")
    typer.echo(f"  Name: {client.name}")


@client_app.command("delete")
def client_delete(
    client_id: Annotated[str, typer.Option("--id", help="Client ID")],
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Delete a client without budgets"""
    service = get_service(db)
    with reported_errors():
        client = service.delete_client(user, client_id)

    typer.echo(f"✓ Deleted client: {client.client_id}")


# Budget commands


@budget_app.command("create")
def budget_create(
    client_id: Annotated[str, typer.Option("--client", help="Client ID")],
    title: Annotated[str, typer.Option("--title", help="Budget title")],
    stories: Annotated[
        Optional[Path],
        typer.Option("--stories", help="JSON file with the list of stories"),
    ] = None,
    hourly_rate: Annotated[
        Optional[float], typer.Option("--rate", help="Hourly rate (default from settings)")
    ] = None,
    test_percentage: Annotated[
        Optional[float],
        typer.Option("--tests", help="Test percentage (default from settings)"),
    ] = None,
    available_hours: Annotated[
        Optional[float],
        typer.Option("--hours", help="Available hours per day (default from settings)"),
    ] = None,
    project_complexity: Annotated[
        Optional[float],
        typer.Option("--project-complexity", help="Project complexity factor"),
    ] = None,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Create a budget"""
    service = get_service(db)
    story_list = load_json_file(stories) if stories else []

    with reported_errors():
        settings = service.get_settings(user)
        budget = service.create_budget(
            user,
            client_id=client_id,
            title=title,
            hourly_rate=hourly_rate if hourly_rate is not None else settings.default_hourly_rate,
            test_percentage=(
                test_percentage
                if test_percentage is not None
                else settings.default_test_percentage
            ),
            available_hours=(
                available_hours
                if available_hours is not None
                else settings.default_available_hours
            ),
            project_complexity_factor=project_complexity,
            stories=story_list,
        )

    typer.echo(f"✓ Created budget: {budget.budget_id}")
    typer.echo(f"  Stories: {len(budget.stories)}")
    typer.echo(f"  Total hours: {budget.total_hours:.1f}h")
    typer.echo(f"  Total value: {budget.total_value:.2f}")
    typer.echo(f"  Estimated days: {budget.estimated_days}")


@budget_app.command("update")
def budget_update(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    file: Annotated[
        Path,
        typer.Option("--file", help="JSON file with the complete desired budget"),
    ],
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """
    Replace a budget with the contents of a JSON file

    Header fields missing from the file keep their current values; the
    "stories" list is always the complete desired tree.
    """
    service = get_service(db)
    payload = load_json_file(file)
    if not isinstance(payload, dict):
        typer.echo("Error: Budget file must contain a JSON object", err=True)
        raise typer.Exit(1)

    with reported_errors():
        current = service.get_budget(user, budget_id)
        result = service.update_budget(
            user,
            budget_id,
            client_id=payload.get("client_id", payload.get("clientId", current.client_id)),
            title=payload.get("title", current.title),
            hourly_rate=payload.get("hourly_rate", payload.get("hourlyRate", current.hourly_rate)),
            test_percentage=payload.get(
                "test_percentage", payload.get("testPercentage", current.test_percentage)
            ),
            available_hours=payload.get(
                "available_hours", payload.get("availableHours", current.available_hours)
            ),
            project_complexity_factor=payload.get(
                "project_complexity_factor",
                payload.get("projectComplexityFactor", current.project_complexity_factor),
            ),
            stories=payload.get("stories", []),
        )

    stats = result.stats
    typer.echo(f"✓ Updated budget: {result.budget.budget_id}")
    typer.echo(
        f"  Stories: +{stats.stories_created} ~{stats.stories_updated} -{stats.stories_deleted}"
    )
    typer.echo(
        f"  Activities: +{stats.activities_created} ~{stats.activities_updated} "
        f"-{stats.activities_deleted}"
    )
    typer.echo(f"  Total value: {result.budget.total_value:.2f}")
    typer.echo(f"  Estimated days: {result.budget.estimated_days}")


@budget_app.command("show")
def budget_show(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    json_output: JsonOption = False,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Show budget details"""
    service = get_service(db)
    with reported_errors():
        budget = service.get_budget(user, budget_id)

    if json_output:
        typer.echo(dump_json(budget))
        return

    echo_budget(budget)


@budget_app.command("list")
def budget_list(
    mine: Annotated[bool, typer.Option("--mine", help="Only my budgets")] = False,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """List budgets, newest first"""
    service = get_service(db)
    with reported_errors():
        budgets = service.list_budgets(user, owned_only=mine)

    if not budgets:
        typer.echo("No budgets")
        return

    typer.echo(f"Budgets ({len(budgets)}):")
    for budget in budgets:
        typer.echo(
            f"  {budget.budget_id}: {budget.title} [{budget.client.name}] - "
            f"{budget.total_value:.2f} / {budget.estimated_days} days"
        )


@budget_app.command("delete")
def budget_delete(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Delete a budget and its stories"""
    service = get_service(db)
    with reported_errors():
        service.delete_budget(user, budget_id)

    typer.echo(f"✓ Deleted budget: {budget_id}")


@budget_app.command("estimate")
def budget_estimate(
    file: Annotated[
        Path,
        typer.Option("--file", help="JSON file with parameters and stories"),
    ],
    json_output: JsonOption = False,
) -> None:
    """Compute totals for a budget file without touching any database"""
    payload = load_json_file(file)
    if not isinstance(payload, dict):
        typer.echo("Error: Budget file must contain a JSON object", err=True)
        raise typer.Exit(1)

    payload = {"client_id": "-", "title": "-", "project_complexity_factor": 1, **payload}
    try:
        command = UpdateBudget.model_validate(payload)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    with reported_errors():
        validate_budget_payload(command, EstimationPolicy())
        totals = calculate_estimate(
            command.stories,
            hourly_rate=command.hourly_rate,
            test_percentage=command.test_percentage,
            available_hours=command.available_hours,
            project_complexity_factor=command.project_complexity_factor,
        )

    if json_output:
        typer.echo(dump_json(totals))
        return

    typer.echo(f"Total hours: {totals.total_hours:.1f}h")
    typer.echo(f"With project complexity: {totals.hours_with_project_complexity:.1f}h")
    typer.echo(f"Test hours: {totals.total_test_hours:.1f}h")
    typer.echo(f"Total value: {totals.total_value:.2f}")
    typer.echo(
        f"Estimated days: {totals.estimated_days} ({describe_duration(totals.estimated_days)})"
    )


@budget_app.command("proposal")
def budget_proposal(
    budget_id: Annotated[str, typer.Option("--id", help="Budget ID")],
    start: Annotated[
        Optional[str],
        typer.Option("--start", help="First working day (YYYY-MM-DD)"),
    ] = None,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Print the proposal summary consumed by the renderer (JSON)"""
    service = get_service(db)
    start_date = date.fromisoformat(start) if start else None
    with reported_errors():
        proposal = service.build_proposal(user, budget_id, start=start_date)

    typer.echo(dump_json(proposal))


# Operations


@app.command("serve")
def serve(
    port: Annotated[int, typer.Option("--port", help="Health server port")] = 8080,
    metrics_port: Annotated[
        Optional[int],
        typer.Option("--metrics-port", help="Expose Prometheus metrics on this port"),
    ] = None,
    db: DbOption = None,
) -> None:
    """Run the health check server (and optionally the metrics endpoint)"""
    from effort_budget.health_server import initialize_health_server, run_health_server
    from effort_budget.kernel.metrics import start_metrics_server

    initialize_health_server(db or DEFAULT_DB)
    if metrics_port is not None:
        start_metrics_server(metrics_port)
    run_health_server(port=port)


# Settings commands


@settings_app.command("show")
def settings_show(user: UserOption = None, db: DbOption = None) -> None:
    """Show default estimation parameters"""
    service = get_service(db)
    with reported_errors():
        settings = service.get_settings(user)

    typer.echo("Settings:")
    typer.echo(f"  Default hourly rate: {settings.default_hourly_rate:.2f}")
    typer.echo(f"  Default test percentage: {settings.default_test_percentage:g}%")
    typer.echo(f"  Default available hours: {settings.default_available_hours:g}")


@settings_app.command("set")
def settings_set(
    hourly_rate: Annotated[Optional[float], typer.Option("--rate")] = None,
    test_percentage: Annotated[Optional[float], typer.Option("--tests")] = None,
    available_hours: Annotated[Optional[float], typer.Option("--hours")] = None,
    user: UserOption = None,
    db: DbOption = None,
) -> None:
    """Change default estimation parameters"""
    service = get_service(db)
    with reported_errors():
        settings = service.update_settings(
            user,
            default_hourly_rate=hourly_rate,
            default_test_percentage=test_percentage,
            default_available_hours=available_hours,
        )

    typer.echo("✓ Updated settings")
    typer.echo(f"  Default hourly rate: {settings.default_hourly_rate:.2f}")
    typer.echo(f"  Default test percentage: {settings.default_test_percentage:g}%")
    typer.echo(f"  Default available hours: {settings.default_available_hours:g}")


if __name__ == "__main__":
    app()
