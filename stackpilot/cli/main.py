"""Main CLI interface using Typer."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from ..api import DeploymentService
from ..config import get_settings
from ..errors import StackPilotError
from ..model.cluster import ClusterAnalysis
from ..model.credentials import ClusterCredentials
from ..model.execution import DeploymentExecution, ExecutionStatus
from ..model.output import OutputFormat
from ..model.plan import DeploymentPlan, StepStatus
from ..model.values import dump_values, load_values
from ..utils.logger import get_logger

app = typer.Typer(
    name="stackpilot",
    help="Plan and deploy cluster add-ons from a free-text request",
    add_completion=True,
)

console = Console()
logger = get_logger(__name__)

STATUS_STYLES: Dict[str, str] = {
    StepStatus.PENDING.value: "dim",
    StepStatus.RUNNING.value: "yellow",
    StepStatus.COMPLETED.value: "green",
    StepStatus.FAILED.value: "red",
}


def _styled(status: str) -> str:
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status.upper()}[/{style}]"


def _credentials(kubeconfig: Optional[Path], context: Optional[str]) -> ClusterCredentials:
    return ClusterCredentials(kubeconfig_path=kubeconfig, context=context)


def _load_requirements(values_file: Optional[Path]) -> Optional[Dict[str, Any]]:
    if values_file is None:
        return None
    return load_values(values_file.read_text())


def _dump(model, output_format: OutputFormat) -> str:
    data = model.model_dump(mode="json")
    if output_format == OutputFormat.JSON:
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


def _print_analysis(analysis: ClusterAnalysis) -> None:
    console.print(f"\n[bold]Cluster:[/bold] {analysis.cluster_name} ({analysis.version})")

    nodes = Table(title="Nodes", show_header=True, header_style="bold magenta")
    nodes.add_column("Name", style="cyan")
    nodes.add_column("Role")
    nodes.add_column("Status")
    nodes.add_column("CPU (alloc/cap)")
    nodes.add_column("Memory (alloc/cap)")
    for node in analysis.nodes:
        nodes.add_row(
            node.name,
            node.role,
            node.status,
            f"{node.cpu.allocatable}/{node.cpu.capacity} ({node.cpu.percentage}%)",
            f"{node.memory.allocatable}/{node.memory.capacity} ({node.memory.percentage}%)",
        )
    console.print(nodes)

    res = analysis.resources
    console.print(
        f"CPU: [green]{res.available_cpu}[/green] of {res.total_cpu} allocatable, "
        f"Memory: [green]{res.available_memory}[/green] of {res.total_memory}, "
        f"Storage: [green]{res.available_storage}[/green] of {res.total_storage}"
    )

    flags = Table(title="Capabilities", show_header=True, header_style="bold magenta")
    flags.add_column("Capability", style="cyan")
    flags.add_column("Available")
    merged = {**analysis.capabilities.model_dump(), **{
        f"security.{k}": v for k, v in analysis.security.model_dump().items()
    }}
    for name, enabled in merged.items():
        flags.add_row(name, "[green]yes[/green]" if enabled else "[red]no[/red]")
    console.print(flags)

    if analysis.storage_classes:
        console.print(f"Storage classes: [cyan]{', '.join(analysis.storage_classes)}[/cyan]")


def _print_plan(plan: DeploymentPlan, show_values: bool = False) -> None:
    console.print(f"\n[bold]{plan.name}[/bold]  ([cyan]{plan.id}[/cyan])")
    console.print(plan.description)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Step", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Chart")
    table.add_column("Version")
    table.add_column("Description", style="white")
    for step in plan.steps:
        chart = step.package.chart_reference if step.package else (step.command or "")
        version = step.package.version if step.package else ""
        table.add_row(step.id, step.name, chart, version, step.description)
    console.print(table)

    impact = plan.resource_impact
    console.print(
        f"Estimated impact: cpu {impact.cpu}, memory {impact.memory}, "
        f"storage {impact.storage}, nodes {impact.nodes} ({plan.estimated_time})"
    )
    if plan.prerequisites:
        console.print("\n[bold]Prerequisites:[/bold]")
        for item in plan.prerequisites:
            console.print(f"  • {item}")
    if plan.risks:
        console.print("\n[bold]Risks:[/bold]")
        for item in plan.risks:
            console.print(f"  • {item}")

    if show_values:
        for step in plan.steps:
            console.print(f"\n[bold]{step.id} values:[/bold]")
            console.print(dump_values(step.values))


def _print_execution(execution: DeploymentExecution, verbose: bool = False) -> None:
    console.print(
        f"\nExecution [cyan]{execution.id}[/cyan] of plan [cyan]{execution.plan_id}[/cyan]: "
        f"{_styled(execution.status.value)}"
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Finished")
    table.add_column("Error", style="red")
    for step in execution.steps:
        table.add_row(
            step.step_id,
            _styled(step.status.value),
            step.start_time.strftime("%H:%M:%S") if step.start_time else "",
            step.end_time.strftime("%H:%M:%S") if step.end_time else "",
            (step.error or "")[:80],
        )
    console.print(table)

    if execution.status == ExecutionStatus.FAILED:
        console.print(f"[red]Error:[/red] {execution.error}")
        if execution.completed_steps:
            console.print(
                f"Left installed (no rollback): [yellow]{', '.join(execution.completed_steps)}[/yellow]"
            )
        if execution.pending_steps:
            console.print(f"Never run: [dim]{', '.join(execution.pending_steps)}[/dim]")

    if verbose:
        for step in execution.steps:
            if step.logs:
                console.print(f"\n[bold]{step.step_id} logs:[/bold]")
                for line in step.logs:
                    console.print(line, markup=False)


@app.command()
def analyze(
    kubeconfig: Optional[Path] = typer.Option(None, "--kubeconfig", "-k", help="Path to kubeconfig"),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Kubernetes context to use"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", "-f", help="Output format"),
):
    """Analyze cluster capabilities and resources."""
    try:
        service = DeploymentService()
        with console.status("[bold green]Analyzing Kubernetes cluster..."):
            analysis = service.analyze_cluster(_credentials(kubeconfig, context))

        if format == OutputFormat.TEXT:
            _print_analysis(analysis)
        else:
            console.print(_dump(analysis, format), markup=False)
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def search(query: str = typer.Argument(..., help="Registry search text")):
    """Show the packages a plan for QUERY would use."""
    try:
        service = DeploymentService()
        with console.status(f"[bold green]Searching for '{query}'..."):
            packages = service.planner.preview(query, timeout=service.settings.registry_timeout)

        if not packages:
            console.print("[yellow]No packages found[/yellow]")
            raise typer.Exit(1)

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("#", style="cyan")
        table.add_column("Package", style="green")
        table.add_column("Repository")
        table.add_column("Version")
        table.add_column("Description", style="white")
        for index, package in enumerate(packages, start=1):
            table.add_row(str(index), package.name, package.repository, package.version, package.description)
        console.print(table)
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def plan(
    request: str = typer.Argument(..., help="What to deploy, e.g. 'prometheus monitoring'"),
    kubeconfig: Optional[Path] = typer.Option(
        None, "--kubeconfig", "-k", help="Analyze this cluster to tailor values"
    ),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Kubernetes context to use"),
    analyze_cluster: bool = typer.Option(
        False, "--analyze/--no-analyze", help="Analyze the cluster before planning"
    ),
    values: Optional[Path] = typer.Option(
        None, "--values", help="YAML file with requirement overrides for every step"
    ),
    show_values: bool = typer.Option(False, "--show-values", help="Print composed values"),
):
    """Create a deployment plan from a free-text request."""
    try:
        service = DeploymentService()
        credentials = None
        if analyze_cluster or kubeconfig or context:
            credentials = _credentials(kubeconfig, context)

        with console.status("[bold green]Creating deployment plan..."):
            created = service.create_plan(
                request, credentials=credentials, requirements=_load_requirements(values)
            )

        _print_plan(created, show_values=show_values)
        console.print(f"\nRun [bold]stackpilot deploy {created.id}[/bold] to execute this plan")
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    except OSError as e:
        logger.error(f"Cannot read values file: {e}")
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(1)


@app.command()
def deploy(
    plan_id: str = typer.Argument(..., help="ID of a stored plan"),
    kubeconfig: Optional[Path] = typer.Option(None, "--kubeconfig", "-k", help="Path to kubeconfig"),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Kubernetes context to use"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print step logs"),
):
    """Execute a stored plan against a cluster."""
    try:
        service = DeploymentService()

        def _progress(execution: DeploymentExecution) -> None:
            running = [s.step_id for s in execution.steps if s.status == StepStatus.RUNNING]
            if running:
                status.update(f"[bold green]Running {running[0]}...")

        with console.status("[bold green]Preparing deployment...") as status:
            execution = service.execute_plan(
                plan_id, _credentials(kubeconfig, context), on_update=_progress
            )

        _print_execution(execution, verbose=verbose)
        if execution.status == ExecutionStatus.FAILED:
            raise typer.Exit(1)
        console.print("[green]✓[/green] Deployment completed successfully!")
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command("show-plan")
def show_plan(
    plan_id: str = typer.Argument(..., help="Plan ID"),
    show_values: bool = typer.Option(False, "--show-values", help="Print composed values"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", "-f", help="Output format"),
):
    """Show a stored plan."""
    try:
        stored = DeploymentService().get_plan(plan_id)
        if format == OutputFormat.TEXT:
            _print_plan(stored, show_values=show_values)
        else:
            console.print(_dump(stored, format), markup=False)
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command("show-execution")
def show_execution(
    execution_id: str = typer.Argument(..., help="Execution ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print step logs"),
    format: OutputFormat = typer.Option(OutputFormat.TEXT, "--format", "-f", help="Output format"),
):
    """Show a stored execution."""
    try:
        execution = DeploymentService().get_execution(execution_id)
        if format == OutputFormat.TEXT:
            _print_execution(execution, verbose=verbose)
        else:
            console.print(_dump(execution, format), markup=False)
    except StackPilotError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-l", help="Number of entries to show"),
    plan_id: Optional[str] = typer.Option(None, "--plan", "-p", help="Only executions of this plan"),
):
    """List recent plans and executions."""
    service = DeploymentService()

    if plan_id is None:
        plans = Table(title="Plans", show_header=True, header_style="bold magenta")
        plans.add_column("ID", style="cyan")
        plans.add_column("Name", style="green")
        plans.add_column("Steps")
        plans.add_column("Created")
        for item in service.list_plans(limit):
            plans.add_row(item.id, item.name, str(len(item.steps)), item.created_at.strftime("%Y-%m-%d %H:%M"))
        console.print(plans)

    executions = Table(title="Executions", show_header=True, header_style="bold magenta")
    executions.add_column("ID", style="cyan")
    executions.add_column("Plan")
    executions.add_column("Status")
    executions.add_column("Started")
    for item in service.list_executions(plan_id=plan_id, limit=limit):
        executions.add_row(
            item.id, item.plan_id, _styled(item.status.value), item.start_time.strftime("%Y-%m-%d %H:%M")
        )
    console.print(executions)


@app.command()
def classify(request: str = typer.Argument(..., help="Free-text request")):
    """Tell whether a request asks for a deployment."""
    result = DeploymentService().classify_request(request)
    verdict = "[green]deployment request[/green]" if result["is_deployment"] else "[yellow]not a deployment request[/yellow]"
    console.print(f"Classification: {verdict}")
    console.print(result["description"])


@app.command()
def config():
    """Show effective settings."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for name, value in get_settings().model_dump().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    console.print(f"[bold]stackpilot[/bold] version {__version__}")
    console.print("Plans and executes cluster add-on deployments")


def main():
    app()


if __name__ == "__main__":
    main()
