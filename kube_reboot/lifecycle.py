"""Per-node reboot lifecycle.

The lifecycle is an explicit state machine. Each non-terminal state has a
phase handler that performs the state's entry action and reports a
PhaseEvent; `transition` is a pure function deciding where that event leads.

    START -> CORDONING -> DRAINING -> REBOOTING -> VERIFYING_REBOOT
          -> VERIFYING_READY -> UNCORDONING -> DONE

Any phase may end in FAILED. A node that fails after being cordoned is left
cordoned.
"""

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field

from kube_reboot.cluster import ClusterAPI
from kube_reboot.eviction import EvictionController
from kube_reboot.events import EventSink, LoggingEventSink
from kube_reboot.exceptions import KubeRebootError, PhaseTimeoutError, TransportError
from kube_reboot.logging_config import get_logger
from kube_reboot.models.node import NodeRecord, NodeTarget
from kube_reboot.models.run import NodeOutcome, NodeState, RunConfig
from kube_reboot.remote import RemoteExec
from kube_reboot.waiter import ConditionWaiter, boot_id_changed, is_node_ready

logger = get_logger(__name__)


class PhaseEvent(str, Enum):
    """Result reported by a phase handler."""

    OK = "ok"
    SKIP = "skip"
    ERROR = "error"
    TIMEOUT = "timeout"
    TRANSPORT_FAILED = "transport-failed"


class Outcome(str, Enum):
    """How the orchestrator should treat a transition."""

    ADVANCE = "advance"
    WARN = "warn"
    FAIL = "fail"
    FINAL = "final"


SUCCESSORS = {
    NodeState.START: NodeState.CORDONING,
    NodeState.CORDONING: NodeState.DRAINING,
    NodeState.DRAINING: NodeState.REBOOTING,
    NodeState.REBOOTING: NodeState.VERIFYING_REBOOT,
    NodeState.VERIFYING_REBOOT: NodeState.VERIFYING_READY,
    NodeState.VERIFYING_READY: NodeState.UNCORDONING,
    NodeState.UNCORDONING: NodeState.DONE,
}


def transition(
    state: NodeState, event: PhaseEvent, require_reboot_verification: bool = True
) -> tuple[NodeState, Outcome]:
    """Compute the next state for a phase result.

    Args:
        state: Current state
        event: What the state's phase handler reported
        require_reboot_verification: If False, an unchanged boot ID is a warning

    Returns:
        Tuple of (next state, outcome)
    """
    if state.terminal:
        return state, Outcome.FINAL

    if event in (PhaseEvent.OK, PhaseEvent.SKIP):
        return SUCCESSORS[state], Outcome.ADVANCE

    # The wait phases verify the reboot independently of the transport
    if event == PhaseEvent.TRANSPORT_FAILED and state == NodeState.REBOOTING:
        return SUCCESSORS[state], Outcome.WARN

    if (
        event == PhaseEvent.TIMEOUT
        and state == NodeState.VERIFYING_REBOOT
        and not require_reboot_verification
    ):
        return SUCCESSORS[state], Outcome.WARN

    return NodeState.FAILED, Outcome.FAIL


class NodeContext(BaseModel):
    """Mutable state carried through one node's lifecycle."""

    target: NodeTarget
    record: NodeRecord | None = None
    boot_id_before: str = ""
    warnings: list[str] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.target.name


class NodeLifecycleOrchestrator:
    """Drive a single node through cordon, drain, reboot, verify and uncordon."""

    def __init__(
        self,
        cluster: ClusterAPI,
        remote: RemoteExec,
        config: RunConfig,
        events: EventSink | None = None,
        eviction: EvictionController | None = None,
        waiter: ConditionWaiter | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            cluster: Cluster API capability
            remote: Remote command capability used for the reboot
            config: Run settings (timeouts, dry-run, reboot command)
            events: Sink for progress events
            eviction: Eviction controller, built from `cluster` if omitted
            waiter: Condition waiter, built from `cluster` if omitted
        """
        self.cluster = cluster
        self.remote = remote
        self.config = config
        self.events = events or LoggingEventSink()
        self.eviction = eviction or EvictionController(
            cluster, self.events, grace_period=config.eviction_grace_period
        )
        self.waiter = waiter or ConditionWaiter(cluster)

        self._handlers: dict[NodeState, Callable[[NodeContext], PhaseEvent]] = {
            NodeState.START: self._start,
            NodeState.CORDONING: self._cordon,
            NodeState.DRAINING: self._drain,
            NodeState.REBOOTING: self._reboot,
            NodeState.VERIFYING_REBOOT: self._verify_reboot,
            NodeState.VERIFYING_READY: self._verify_ready,
            NodeState.UNCORDONING: self._uncordon,
        }

    def process(self, target: NodeTarget) -> NodeOutcome:
        """Run the full lifecycle for one node. Never raises for node failures."""
        ctx = NodeContext(target=target)
        state = NodeState.START
        failed_phase = None
        error = None

        self.events.info("node.start", "Starting node restart process", node=ctx.name)

        while not state.terminal:
            event, phase_error = self._run_phase(state, ctx)
            next_state, outcome = transition(
                state, event, self.config.require_reboot_verification
            )
            logger.debug(f"{ctx.name}: {state.value} -> {next_state.value} ({event.value})")

            if outcome == Outcome.WARN:
                message = phase_error.message if phase_error else f"{state.value} {event.value}"
                ctx.warnings.append(message)
                self.events.warning(
                    "node.phase.warning", message, node=ctx.name, phase=state.value
                )
            elif outcome == Outcome.FAIL:
                failed_phase = state
                error = phase_error or KubeRebootError(f"Phase {state.value} failed")

            state = next_state

        if state == NodeState.DONE:
            self.events.info(
                "node.done", "Node restart process completed successfully", node=ctx.name
            )
        else:
            self.events.error(
                "node.failed",
                "Node processing failed",
                node=ctx.name,
                phase=failed_phase.value,
                error=error.message,
            )

        return NodeOutcome(
            node=ctx.name,
            state=state,
            failed_phase=failed_phase,
            error=error,
            warnings=tuple(ctx.warnings),
        )

    def _run_phase(
        self, state: NodeState, ctx: NodeContext
    ) -> tuple[PhaseEvent, KubeRebootError | None]:
        handler = self._handlers[state]
        try:
            return handler(ctx), None
        except PhaseTimeoutError as e:
            return PhaseEvent.TIMEOUT, e
        except TransportError as e:
            return PhaseEvent.TRANSPORT_FAILED, e
        except KubeRebootError as e:
            return PhaseEvent.ERROR, e
        except Exception as e:
            logger.error(
                f"Unexpected error in phase {state.value} on {ctx.name}: {e}", exc_info=True
            )
            return PhaseEvent.ERROR, KubeRebootError(
                f"Unexpected error in phase {state.value}: {e}",
                "Run with --verbose --log-file debug.log for more details",
            )

    def _start(self, ctx: NodeContext) -> PhaseEvent:
        ctx.record = self.cluster.get_node(ctx.name)
        ctx.boot_id_before = ctx.record.boot_id
        if not ctx.boot_id_before:
            self.events.warning(
                "node.boot-id.missing",
                "Boot ID not reported, reboot verification will be skipped",
                node=ctx.name,
            )
        return PhaseEvent.OK

    def _cordon(self, ctx: NodeContext) -> PhaseEvent:
        if ctx.record.unschedulable:
            self.events.info("node.cordon.skipped", "Node already cordoned", node=ctx.name)
            return PhaseEvent.SKIP

        if self.config.dry_run:
            self.events.info("node.cordon.dry-run", "DRY-RUN: would cordon node", node=ctx.name)
            return PhaseEvent.OK

        self.cluster.set_unschedulable(ctx.name, True)
        self.events.info("node.cordoned", "Node cordoned - scheduling disabled", node=ctx.name)
        return PhaseEvent.OK

    def _drain(self, ctx: NodeContext) -> PhaseEvent:
        self.events.info("node.drain.start", "Starting pod eviction process", node=ctx.name)
        report = self.eviction.drain(
            ctx.name,
            poll_interval=self.config.poll_interval,
            timeout=self.config.drain_timeout,
            dry_run=self.config.dry_run,
        )
        self.events.info(
            "node.drained",
            "Pod eviction completed successfully",
            node=ctx.name,
            evicted=len(report.evicted),
            protected=len(report.protected),
        )
        return PhaseEvent.OK

    def _reboot(self, ctx: NodeContext) -> PhaseEvent:
        self.events.info(
            "node.reboot.start",
            "Initiating system reboot",
            node=ctx.name,
            boot_id=ctx.boot_id_before or "unknown",
        )

        if self.config.dry_run:
            self.events.info(
                "node.reboot.dry-run",
                "DRY-RUN: would run reboot command",
                node=ctx.name,
                address=ctx.target.address,
                command=self.config.reboot_command,
            )
            return PhaseEvent.OK

        self.remote.run(ctx.target.address, self.config.reboot_command)
        self.events.info("node.reboot.sent", "Reboot command sent successfully", node=ctx.name)
        return PhaseEvent.OK

    def _verify_reboot(self, ctx: NodeContext) -> PhaseEvent:
        if self.config.dry_run:
            self.events.info(
                "node.reboot.verify.skipped", "DRY-RUN: skipping boot ID wait", node=ctx.name
            )
            return PhaseEvent.SKIP

        if not ctx.boot_id_before:
            return PhaseEvent.SKIP

        timeout = self.config.boot_id_timeout
        self.events.info(
            "node.reboot.wait", "Waiting for node reboot", node=ctx.name, timeout_seconds=timeout
        )
        result = self.waiter.wait_until(
            ctx.name, boot_id_changed(ctx.boot_id_before), self.config.poll_interval, timeout
        )
        if not result:
            raise PhaseTimeoutError(
                ctx.name,
                NodeState.VERIFYING_REBOOT.value,
                timeout,
                "Boot ID unchanged - reboot may have failed",
            )

        self.events.info(
            "node.reboot.confirmed", "Reboot confirmed", node=ctx.name, polls=result.ticks
        )
        return PhaseEvent.OK

    def _verify_ready(self, ctx: NodeContext) -> PhaseEvent:
        if self.config.dry_run:
            self.events.info(
                "node.ready.skipped", "DRY-RUN: skipping readiness wait", node=ctx.name
            )
            return PhaseEvent.SKIP

        timeout = self.config.ready_timeout
        self.events.info(
            "node.ready.wait",
            "Waiting for node to become ready",
            node=ctx.name,
            timeout_seconds=timeout,
        )
        result = self.waiter.wait_until(ctx.name, is_node_ready, self.config.poll_interval, timeout)
        if not result:
            raise PhaseTimeoutError(
                ctx.name,
                NodeState.VERIFYING_READY.value,
                timeout,
                "Node failed to become ready within timeout",
            )

        self.events.info("node.ready", "Node is ready", node=ctx.name, polls=result.ticks)
        return PhaseEvent.OK

    def _uncordon(self, ctx: NodeContext) -> PhaseEvent:
        if self.config.dry_run:
            self.events.info(
                "node.uncordon.dry-run", "DRY-RUN: would uncordon node", node=ctx.name
            )
            return PhaseEvent.OK

        self.cluster.set_unschedulable(ctx.name, False)
        self.events.info("node.uncordoned", "Node uncordoned - scheduling enabled", node=ctx.name)
        return PhaseEvent.OK
