"""Data models for node state and SSH targets."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

CONTROL_PLANE_LABELS = (
    "node-role.kubernetes.io/control-plane",
    "node-role.kubernetes.io/master",
)


class NodeCondition(BaseModel):
    """A single condition reported in a node's status."""

    type: str
    status: str  # True, False, Unknown


class NodeRecord(BaseModel):
    """Snapshot of the node fields the reboot lifecycle cares about."""

    name: str
    unschedulable: bool = False
    boot_id: str = ""
    conditions: list[NodeCondition] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)

    @property
    def is_control_plane(self) -> bool:
        """Whether the node carries one of the control-plane role labels."""
        return any(label in self.labels for label in CONTROL_PLANE_LABELS)

    def condition(self, condition_type: str) -> NodeCondition | None:
        """Return the condition of the given type, if reported."""
        return next((c for c in self.conditions if c.type == condition_type), None)

    @classmethod
    def from_kubernetes(cls, node) -> "NodeRecord":
        """Build a record from a kubernetes.client.V1Node."""
        metadata = node.metadata
        spec = node.spec
        status = node.status

        boot_id = ""
        if status is not None and status.node_info is not None:
            boot_id = status.node_info.boot_id or ""

        conditions = []
        if status is not None:
            for condition in status.conditions or []:
                conditions.append(NodeCondition(type=condition.type, status=condition.status))

        return cls(
            name=metadata.name,
            unschedulable=bool(spec is not None and spec.unschedulable),
            boot_id=boot_id,
            conditions=conditions,
            labels=metadata.labels or {},
        )


class NodeTarget(BaseModel):
    """A node name and the SSH address used to reboot it."""

    model_config = ConfigDict(frozen=True)

    name: str
    address: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate node name is not empty."""
        if not v:
            raise ValueError("node name cannot be empty")
        return v

    @classmethod
    def build(
        cls, name: str, host_template: str = "{node}", user: str | None = None
    ) -> "NodeTarget":
        """Resolve the SSH address for a node.

        Args:
            name: Kubernetes node name
            host_template: Host template containing a ``{node}`` placeholder
            user: Optional SSH user, prefixed unless the template already has one

        Returns:
            NodeTarget with the expanded address
        """
        host = host_template.replace("{node}", name)
        if user and "@" not in host:
            host = f"{user}@{host}"
        return cls(name=name, address=host)
