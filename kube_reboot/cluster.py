"""Cluster API capability and its Kubernetes client binding."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from kube_reboot.exceptions import ClusterAPIError
from kube_reboot.logging_config import get_logger
from kube_reboot.models.node import CONTROL_PLANE_LABELS, NodeRecord
from kube_reboot.models.pod import PodRecord

logger = get_logger(__name__)

DEFAULT_KUBECONFIG = "~/.kube/config"


class ClusterAPI(Protocol):
    """Operations the reboot lifecycle needs from the cluster."""

    def list_nodes(self, exclude_control_plane: bool = False) -> list[str]: ...

    def get_node(self, name: str) -> NodeRecord: ...

    def set_unschedulable(self, name: str, unschedulable: bool) -> None: ...

    def list_pods_on_node(self, name: str) -> list[PodRecord]: ...

    def evict_pod(self, namespace: str, name: str, grace_seconds: int) -> None: ...


@contextmanager
def _api_call(action: str) -> Iterator[None]:
    """Translate client failures into ClusterAPIError."""
    try:
        yield
    except ApiException as e:
        logger.debug(f"Kubernetes API call failed while trying to {action}: {e}")
        raise ClusterAPIError(f"Failed to {action}", f"HTTP {e.status}: {e.reason}")
    except urllib3.exceptions.HTTPError as e:
        logger.debug(f"Connection to the API server failed while trying to {action}: {e}")
        raise ClusterAPIError(f"Failed to {action}", f"Could not reach the API server: {e}")


class KubernetesClusterAPI:
    """ClusterAPI backed by kubernetes.client.CoreV1Api."""

    def __init__(self, core_api: client.CoreV1Api):
        """Initialize the binding.

        Args:
            core_api: Configured CoreV1Api instance
        """
        self.core = core_api

    @classmethod
    def from_kubeconfig(
        cls, kubeconfig: str | None = None, context: str | None = None
    ) -> "KubernetesClusterAPI":
        """Load cluster credentials and build the binding.

        An explicit kubeconfig path or context wins; otherwise ~/.kube/config is
        used when present and in-cluster service account credentials when not.

        Raises:
            ClusterAPIError: If no usable configuration could be loaded
        """
        try:
            if kubeconfig or context:
                config_file = str(Path(kubeconfig).expanduser()) if kubeconfig else None
                logger.debug(f"Loading kubeconfig {config_file or 'default'} context={context}")
                config.load_kube_config(config_file=config_file, context=context)
            elif Path(DEFAULT_KUBECONFIG).expanduser().exists():
                logger.debug(f"Loading kubeconfig from {DEFAULT_KUBECONFIG}")
                config.load_kube_config()
            else:
                logger.debug("No kubeconfig found, using in-cluster configuration")
                config.load_incluster_config()
        except (config.ConfigException, OSError) as e:
            raise ClusterAPIError(
                f"Failed to load kubeconfig: {e}",
                "Make sure:\n"
                "  1. Kubeconfig is available at ~/.kube/config or passed with --kubeconfig\n"
                "  2. The context passed with --context exists\n"
                "  3. You have access to the cluster",
            )

        return cls(client.CoreV1Api())

    def list_nodes(self, exclude_control_plane: bool = False) -> list[str]:
        """List node names, optionally leaving out control-plane nodes."""
        label_selector = ""
        if exclude_control_plane:
            label_selector = ",".join(f"!{label}" for label in CONTROL_PLANE_LABELS)

        with _api_call("list nodes"):
            response = self.core.list_node(label_selector=label_selector)

        names = [node.metadata.name for node in response.items]
        logger.debug(f"Listed {len(names)} nodes (exclude_control_plane={exclude_control_plane})")
        return names

    def list_node_records(self) -> list[NodeRecord]:
        """List every node as a NodeRecord."""
        with _api_call("list nodes"):
            response = self.core.list_node()
        return [NodeRecord.from_kubernetes(node) for node in response.items]

    def get_node(self, name: str) -> NodeRecord:
        with _api_call(f"get node {name}"):
            node = self.core.read_node(name)
        return NodeRecord.from_kubernetes(node)

    def set_unschedulable(self, name: str, unschedulable: bool) -> None:
        action = "cordon" if unschedulable else "uncordon"
        with _api_call(f"{action} node {name}"):
            self.core.patch_node(name, {"spec": {"unschedulable": unschedulable}})
        logger.debug(f"Patched node {name}: unschedulable={unschedulable}")

    def list_pods_on_node(self, name: str) -> list[PodRecord]:
        with _api_call(f"list pods on node {name}"):
            response = self.core.list_pod_for_all_namespaces(field_selector=f"spec.nodeName={name}")
        return [PodRecord.from_kubernetes(pod) for pod in response.items]

    def evict_pod(self, namespace: str, name: str, grace_seconds: int) -> None:
        body = client.V1Eviction(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            delete_options=client.V1DeleteOptions(grace_period_seconds=grace_seconds),
        )
        with _api_call(f"evict pod {namespace}/{name}"):
            self.core.create_namespaced_pod_eviction(name=name, namespace=namespace, body=body)
