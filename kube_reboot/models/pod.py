"""Data models for pods and the eviction protection rules.

A pod is *protected* when draining it makes no sense or is unsafe: static
(mirror) pods, DaemonSet pods, critical pods in system namespaces and pods
that are already terminating. Protected pods are never evicted. Terminating
pods still count as work remaining on a node until they are gone.
"""

from collections.abc import Callable

from pydantic import BaseModel, Field

MIRROR_POD_ANNOTATION = "kubernetes.io/config.mirror"
CRITICAL_POD_ANNOTATION = "scheduler.alpha.kubernetes.io/critical-pod"
SYSTEM_NAMESPACES = frozenset({"kube-system"})
PER_NODE_CONTROLLER_KINDS = frozenset({"DaemonSet"})
TERMINATING = "terminating"


class PodRecord(BaseModel):
    """Pod fields needed to decide whether it can be evicted."""

    namespace: str
    name: str
    annotations: dict[str, str] = Field(default_factory=dict)
    owner_kinds: list[str] = Field(default_factory=list)
    deletion_requested: bool = False

    @property
    def key(self) -> str:
        """namespace/name identifier."""
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_kubernetes(cls, pod) -> "PodRecord":
        """Build a record from a kubernetes.client.V1Pod."""
        metadata = pod.metadata
        return cls(
            namespace=metadata.namespace,
            name=metadata.name,
            annotations=metadata.annotations or {},
            owner_kinds=[owner.kind for owner in metadata.owner_references or []],
            deletion_requested=metadata.deletion_timestamp is not None,
        )


def _is_mirror_pod(pod: PodRecord) -> bool:
    return bool(pod.annotations.get(MIRROR_POD_ANNOTATION))


def _is_per_node_controller_pod(pod: PodRecord) -> bool:
    return any(kind in PER_NODE_CONTROLLER_KINDS for kind in pod.owner_kinds)


def _is_critical_system_pod(pod: PodRecord) -> bool:
    if pod.namespace not in SYSTEM_NAMESPACES:
        return False
    return bool(pod.annotations.get(CRITICAL_POD_ANNOTATION))


def _is_terminating(pod: PodRecord) -> bool:
    return pod.deletion_requested


# Checked in order, first match wins
PROTECTION_RULES: list[tuple[str, Callable[[PodRecord], bool]]] = [
    ("mirror pod", _is_mirror_pod),
    ("daemonset pod", _is_per_node_controller_pod),
    ("critical system pod", _is_critical_system_pod),
    (TERMINATING, _is_terminating),
]


def protection_reason(pod: PodRecord) -> str | None:
    """Return why a pod must not be evicted, or None if it is evictable."""
    for reason, rule in PROTECTION_RULES:
        if rule(pod):
            return reason
    return None


def is_protected(pod: PodRecord) -> bool:
    """Whether the pod is exempt from eviction."""
    return protection_reason(pod) is not None


class EvictionCandidate(BaseModel):
    """A pod on a node being drained, with its classification."""

    pod: PodRecord
    reason: str | None = None

    @property
    def protected(self) -> bool:
        return self.reason is not None

    @classmethod
    def classify(cls, pod: PodRecord) -> "EvictionCandidate":
        """Classify a pod against the protection rules."""
        return cls(pod=pod, reason=protection_reason(pod))
