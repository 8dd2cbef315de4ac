"""Node selection and sequential processing of a reboot run."""

import time
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel, Field

from kube_reboot.cluster import ClusterAPI
from kube_reboot.events import EventSink, LoggingEventSink
from kube_reboot.exceptions import ConfigurationError
from kube_reboot.lifecycle import NodeLifecycleOrchestrator
from kube_reboot.logging_config import get_logger
from kube_reboot.models.node import NodeTarget
from kube_reboot.models.run import RunConfig, RunResult

logger = get_logger(__name__)


def read_nodes_file(path: str | Path) -> list[str]:
    """Read node names from a file, one per line.

    Blank lines and lines starting with '#' are ignored.

    Raises:
        ConfigurationError: If the file cannot be read
    """
    path = Path(path)
    try:
        lines = path.read_text().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Failed to read nodes file: {path}", str(e))

    nodes = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        nodes.append(line)
    return nodes


class NodeSelection(BaseModel):
    """Target nodes after exclusions, with what was left out."""

    nodes: list[str] = Field(default_factory=list)
    excluded: list[str] = Field(default_factory=list)
    missing_exclusions: list[str] = Field(default_factory=list)


def apply_exclusions(nodes: list[str], exclude: list[str]) -> NodeSelection:
    """Remove excluded names from `nodes`, keeping order and duplicates.

    Excluded names that are not in `nodes` are reported, not rejected.
    """
    exclude_set = set(exclude)
    present = set(nodes)
    return NodeSelection(
        nodes=[n for n in nodes if n not in exclude_set],
        excluded=[n for n in nodes if n in exclude_set],
        missing_exclusions=[e for e in dict.fromkeys(exclude) if e not in present],
    )


class RunCoordinator:
    """Resolve the node set and reboot each node in turn."""

    def __init__(
        self,
        config: RunConfig,
        cluster: ClusterAPI,
        orchestrator: NodeLifecycleOrchestrator,
        events: EventSink | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.cluster = cluster
        self.orchestrator = orchestrator
        self.events = events or LoggingEventSink()
        self.sleep = sleep

    def resolve_nodes(self) -> list[str]:
        """Resolve the requested node names before exclusions.

        Explicit names win over a nodes file, which wins over --all.

        Raises:
            ConfigurationError: If no node was requested
            ClusterAPIError: If listing the cluster's nodes fails
        """
        if self.config.nodes:
            nodes = list(self.config.nodes)
            logger.debug(f"Using {len(nodes)} nodes from the command line")
        elif self.config.nodes_file:
            nodes = read_nodes_file(self.config.nodes_file)
            logger.debug(f"Read {len(nodes)} nodes from {self.config.nodes_file}")
        elif self.config.all_nodes:
            nodes = self.cluster.list_nodes(self.config.exclude_control_plane)
            logger.debug(f"Cluster reported {len(nodes)} nodes")
        else:
            nodes = []

        if not nodes:
            raise ConfigurationError(
                "No nodes provided",
                "Pass node names as arguments, use --file to read them from a file, "
                "or use --all to restart every node in the cluster",
            )
        return nodes

    def select(self) -> NodeSelection:
        """Resolve nodes and apply exclusions.

        Raises:
            ConfigurationError: If no node is left to process
        """
        nodes = self.resolve_nodes()
        if not self.config.exclude_nodes:
            return NodeSelection(nodes=nodes)

        selection = apply_exclusions(nodes, self.config.exclude_nodes)
        if selection.excluded:
            self.events.info(
                "run.excluded",
                "Excluded nodes",
                count=len(selection.excluded),
                nodes=", ".join(selection.excluded),
            )
        else:
            self.events.info(
                "run.excluded.none",
                "--exclude-nodes provided but none matched the target node list",
            )
        if selection.missing_exclusions:
            self.events.warning(
                "run.excluded.missing",
                "Exclude nodes not found in target set",
                missing=", ".join(selection.missing_exclusions),
            )
        if not selection.nodes:
            raise ConfigurationError(
                "All nodes were excluded - no nodes to process",
                f"Excluded: {', '.join(selection.excluded)}",
            )
        return selection

    def build_targets(self, nodes: list[str]) -> list[NodeTarget]:
        return [
            NodeTarget.build(name, self.config.ssh_host_template, self.config.ssh_user)
            for name in nodes
        ]

    def announce(self, targets: list[NodeTarget]) -> None:
        """Emit the run plan before touching any node."""
        self.events.info(
            "run.targets",
            "Target nodes",
            count=len(targets),
            nodes=", ".join(t.name for t in targets),
        )
        self.events.info("run.ssh", "SSH options", opts=self.config.ssh_options)
        if self.config.ssh_identity_file:
            self.events.info(
                "run.ssh.identity", "SSH identity file", path=self.config.ssh_identity_file
            )
        self.events.info(
            "run.verification",
            "Require reboot verification",
            enabled=self.config.require_reboot_verification,
        )
        if self.config.all_nodes:
            self.events.info(
                "run.all",
                "Processing all nodes",
                exclude_control_plane=self.config.exclude_control_plane,
            )
        if self.config.dry_run:
            self.events.info("run.dry-run", "DRY-RUN mode enabled - no actual changes will be made")

    def run(self) -> RunResult:
        """Process every selected node sequentially.

        Raises:
            ConfigurationError: If the node set is empty after filtering
            ClusterAPIError: If --all is used and the node list cannot be fetched
        """
        selection = self.select()
        targets = self.build_targets(selection.nodes)

        self.events.info("run.start", "Starting kube-reboot operation")
        self.announce(targets)

        if self.config.initial_wait > 0:
            self.events.info(
                "run.initial-wait",
                "Initial wait before starting operations",
                seconds=self.config.initial_wait,
            )
            self.sleep(self.config.initial_wait)

        result = RunResult(missing_exclusions=selection.missing_exclusions)
        for target in targets:
            result.outcomes.append(self.orchestrator.process(target))

        if result.failed:
            self.events.error(
                "run.failed",
                "Operation failed",
                failed_count=result.failed,
                failed_nodes=", ".join(result.failed_nodes),
            )
        else:
            self.events.info("run.done", "All nodes processed successfully")
        return result
