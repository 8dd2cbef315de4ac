"""Data models for nodes, pods and reboot runs."""

from kube_reboot.models.node import NodeCondition, NodeRecord, NodeTarget
from kube_reboot.models.pod import EvictionCandidate, PodRecord, is_protected, protection_reason
from kube_reboot.models.run import NodeOutcome, NodeState, RunConfig, RunResult

__all__ = [
    "NodeCondition",
    "NodeRecord",
    "NodeTarget",
    "PodRecord",
    "EvictionCandidate",
    "is_protected",
    "protection_reason",
    "NodeState",
    "RunConfig",
    "NodeOutcome",
    "RunResult",
]
