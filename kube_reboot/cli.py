"""Main CLI entry point for kube-reboot."""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from kube_reboot.exceptions import ClusterAPIError, ConfigurationError
from kube_reboot.logging_config import get_logger, setup_logging
from kube_reboot.models.run import RunResult

app = typer.Typer(
    name="kube-reboot",
    help="Safely reboot Kubernetes nodes: cordon, drain, reboot over SSH, verify, uncordon",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Path to log file"),
):
    """Global options for all commands."""
    log_path = Path(log_file) if log_file else None
    setup_logging(verbose=verbose, log_file=log_path)
    logger.debug("Logging initialized")


@app.command()
def version() -> None:
    """Show version information."""
    from kube_reboot import __version__

    typer.echo(f"kube-reboot version {__version__}")


def _print_summary(result: RunResult) -> None:
    table = Table(title="Node Restart Summary")
    table.add_column("Node", style="cyan")
    table.add_column("Result")
    table.add_column("Failed Phase", style="magenta")
    table.add_column("Details")

    for outcome in result.outcomes:
        if outcome.succeeded:
            status = "[green]✓ Done[/green]"
        else:
            status = "[red]✗ Failed[/red]"
        phase = outcome.failed_phase.value if outcome.failed_phase else ""
        details = outcome.error.message if outcome.error else "; ".join(outcome.warnings)
        table.add_row(outcome.node, status, phase, details)

    console.print(table)
    console.print(f"\n[bold]Processed:[/bold] {result.processed}")
    console.print(f"[bold]Failed:[/bold] {result.failed}")

    if result.failed:
        console.print(f"\n[red]✗ Failed nodes:[/red] {', '.join(result.failed_nodes)}")
    else:
        console.print("\n[green]✓ All nodes processed successfully[/green]")


@app.command()
def restart(
    nodes: list[str] | None = typer.Argument(None, help="Names of the nodes to restart"),
    nodes_file: str | None = typer.Option(
        None, "--file", "-f", help="Read node names from file (one per line, '#' for comments)"
    ),
    ssh_user: str | None = typer.Option(None, "--ssh-user", "-u", help="SSH username"),
    identity_file: str | None = typer.Option(
        None, "--identity", "-i", help="SSH private key file"
    ),
    ssh_opts: str | None = typer.Option(None, "--ssh-opts", help="Extra options passed to ssh"),
    ssh_host_template: str | None = typer.Option(
        None,
        "--ssh-host-template",
        help="SSH host template; '{node}' is replaced with the node name",
    ),
    reboot_cmd: str | None = typer.Option(None, "--reboot-cmd", help="Reboot command to execute"),
    drain_timeout: float | None = typer.Option(
        None, "--drain-timeout", help="Timeout waiting for pods to be evicted (seconds)"
    ),
    grace_period: int | None = typer.Option(
        None, "--grace-period", help="Grace period given to evicted pods (seconds)"
    ),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", help="Polling interval (seconds)"
    ),
    timeout_bootid: float | None = typer.Option(
        None, "--timeout-bootid", help="Timeout waiting for boot ID change (seconds)"
    ),
    timeout_ready: float | None = typer.Option(
        None, "--timeout-ready", help="Timeout waiting for node to become ready (seconds)"
    ),
    initial_wait: float | None = typer.Option(
        None, "--initial-wait", help="Pause before the first node is touched (seconds)"
    ),
    allow_uncordon_without_reboot: bool = typer.Option(
        False,
        "--allow-uncordon-without-reboot",
        help="Uncordon even if the boot ID did not change",
    ),
    all_nodes: bool = typer.Option(False, "--all", help="Restart all nodes in the cluster"),
    exclude_control_plane: bool = typer.Option(
        False, "--exclude-control-plane", help="Exclude control plane nodes when using --all"
    ),
    exclude_nodes: str | None = typer.Option(
        None, "--exclude-nodes", help="Comma-separated node names to exclude (e.g., 'node1,node2')"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be done without executing"
    ),
    kubeconfig: str | None = typer.Option(
        None, "--kubeconfig", envvar="KUBECONFIG", help="Path to kubeconfig file"
    ),
    context: str | None = typer.Option(None, "--context", help="Kubeconfig context to use"),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="YAML file with default settings; flags override it"
    ),
) -> None:
    """
    Restart nodes one at a time.

    Each node is cordoned, drained, rebooted over SSH, checked for a new boot ID,
    waited on until Ready, and uncordoned. A failed node is reported and left
    cordoned; the remaining nodes are still processed.

    Examples:
        # Restart specific nodes
        kube-reboot restart node1 node2

        # Restart all worker nodes (dry-run)
        kube-reboot restart --all --exclude-control-plane --dry-run

        # Restart nodes from file
        kube-reboot restart -f nodes.txt

        # Custom SSH settings
        kube-reboot restart -u myuser -i ~/.ssh/mykey node1
    """
    from pydantic import ValidationError

    from kube_reboot.cluster import KubernetesClusterAPI
    from kube_reboot.coordinator import RunCoordinator
    from kube_reboot.events import ConsoleEventSink
    from kube_reboot.lifecycle import NodeLifecycleOrchestrator
    from kube_reboot.models.run import RunConfig
    from kube_reboot.remote import SSHRunner

    try:
        settings = RunConfig.read_defaults(config_file) if config_file else {}

        # Flags override values from the config file
        overrides = {
            "nodes": nodes or None,
            "nodes_file": nodes_file,
            "ssh_user": ssh_user,
            "ssh_identity_file": identity_file,
            "ssh_options": ssh_opts,
            "ssh_host_template": ssh_host_template,
            "reboot_command": reboot_cmd,
            "drain_timeout": drain_timeout,
            "eviction_grace_period": grace_period,
            "poll_interval": poll_interval,
            "boot_id_timeout": timeout_bootid,
            "ready_timeout": timeout_ready,
            "initial_wait": initial_wait,
            "kubeconfig": kubeconfig,
            "kube_context": context,
        }
        settings.update({key: value for key, value in overrides.items() if value is not None})

        if exclude_nodes:
            settings["exclude_nodes"] = [n for n in exclude_nodes.split(",") if n.strip()]
        if all_nodes:
            settings["all_nodes"] = True
        if exclude_control_plane:
            settings["exclude_control_plane"] = True
        if dry_run:
            settings["dry_run"] = True
        if allow_uncordon_without_reboot:
            settings["require_reboot_verification"] = False

        try:
            run_config = RunConfig(**settings)
        except ValidationError as e:
            console.print("[red]Validation Error:[/red]")
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                console.print(f"  - {field}: {error['msg']}")
            raise typer.Exit(code=1)

        events = ConsoleEventSink(console)
        cluster = KubernetesClusterAPI.from_kubeconfig(
            run_config.kubeconfig, run_config.kube_context
        )
        remote = SSHRunner(
            options=run_config.ssh_options,
            identity_file=run_config.ssh_identity_file,
            dry_run=run_config.dry_run,
        )
        orchestrator = NodeLifecycleOrchestrator(cluster, remote, run_config, events)
        coordinator = RunCoordinator(run_config, cluster, orchestrator, events)

        result = coordinator.run()
        console.print()
        _print_summary(result)

        if result.exit_code != 0:
            raise typer.Exit(code=result.exit_code)

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        console.print(f"[red]Configuration Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)
    except ClusterAPIError as e:
        logger.error(f"Kubernetes API error: {e.message}")
        console.print(f"[red]Kubernetes API Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Restart interrupted by user[/yellow]")
        console.print("Nodes processed so far may be left cordoned")
        raise typer.Exit(code=130)


@app.command()
def nodes(
    kubeconfig: str | None = typer.Option(
        None, "--kubeconfig", envvar="KUBECONFIG", help="Path to kubeconfig file"
    ),
    context: str | None = typer.Option(None, "--context", help="Kubeconfig context to use"),
) -> None:
    """
    Show cluster nodes with their readiness, scheduling state and boot ID.

    Useful before and after a restart run to confirm which nodes are
    still cordoned and which have a new boot ID.
    """
    from kube_reboot.cluster import KubernetesClusterAPI
    from kube_reboot.waiter import is_node_ready

    try:
        cluster = KubernetesClusterAPI.from_kubeconfig(kubeconfig, context)
        records = cluster.list_node_records()

        if not records:
            console.print("[yellow]No nodes found in the cluster[/yellow]")
            return

        table = Table(title=f"Cluster Nodes ({len(records)})")
        table.add_column("Name", style="cyan")
        table.add_column("Role", style="magenta")
        table.add_column("Status", style="green")
        table.add_column("Scheduling")
        table.add_column("Boot ID", style="blue")

        for record in sorted(records, key=lambda r: r.name):
            role = "Control Plane" if record.is_control_plane else "Worker"
            ready = is_node_ready(record)
            status = "[green]✓ Ready[/green]" if ready else "[red]✗ NotReady[/red]"
            scheduling = "[yellow]Cordoned[/yellow]" if record.unschedulable else "Schedulable"
            table.add_row(record.name, role, status, scheduling, record.boot_id or "N/A")

        console.print(table)

        cordoned = sum(1 for r in records if r.unschedulable)
        console.print(f"\n[bold]Cordoned:[/bold] {cordoned}")

    except ClusterAPIError as e:
        console.print(f"[red]Kubernetes API Error:[/red] {e.message}")
        if e.details:
            console.print(f"\n{e.details}")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
