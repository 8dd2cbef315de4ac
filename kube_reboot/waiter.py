"""Bounded polling of node state."""

import time
from collections.abc import Callable

from pydantic import BaseModel

from kube_reboot.cluster import ClusterAPI
from kube_reboot.exceptions import ClusterAPIError
from kube_reboot.logging_config import get_logger
from kube_reboot.models.node import NodeRecord

logger = get_logger(__name__)

NodePredicate = Callable[[NodeRecord], bool]

READY_CONDITION = "Ready"


def is_node_ready(node: NodeRecord) -> bool:
    """The Ready condition is reported and True; other conditions are ignored."""
    condition = node.condition(READY_CONDITION)
    return condition is not None and condition.status == "True"


def boot_id_changed(before: str) -> NodePredicate:
    """Build a predicate matching a non-empty boot ID different from `before`."""

    def predicate(node: NodeRecord) -> bool:
        return bool(node.boot_id) and node.boot_id != before

    return predicate


class WaitResult(BaseModel):
    """Outcome of a bounded wait. Truthy when the predicate was satisfied."""

    satisfied: bool
    ticks: int
    elapsed: float

    def __bool__(self) -> bool:
        return self.satisfied


class ConditionWaiter:
    """Poll a node until a predicate holds or a deadline passes."""

    def __init__(
        self,
        cluster: ClusterAPI,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cluster = cluster
        self.clock = clock
        self.sleep = sleep

    def wait_until(
        self, node: str, predicate: NodePredicate, interval: float, timeout: float
    ) -> WaitResult:
        """Re-fetch the node every `interval` seconds until `predicate` holds.

        Fetch errors count as "not yet"; only the deadline ends the wait.

        Args:
            node: Node name
            predicate: Check applied to each freshly fetched NodeRecord
            interval: Seconds to sleep between checks
            timeout: Seconds before giving up

        Returns:
            WaitResult with the number of checks performed
        """
        start = self.clock()
        deadline = start + timeout
        ticks = 0

        while self.clock() < deadline:
            ticks += 1
            try:
                record = self.cluster.get_node(node)
            except ClusterAPIError as e:
                logger.debug(f"Poll {ticks} for node {node} failed, retrying: {e.message}")
            else:
                if predicate(record):
                    return WaitResult(satisfied=True, ticks=ticks, elapsed=self.clock() - start)
            self.sleep(interval)

        return WaitResult(satisfied=False, ticks=ticks, elapsed=self.clock() - start)
