"""Data models for run configuration and per-node results."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kube_reboot.exceptions import ConfigurationError, KubeRebootError

DEFAULT_SSH_OPTIONS = "-o StrictHostKeyChecking=no -o BatchMode=yes -o ConnectTimeout=10"
DEFAULT_REBOOT_COMMAND = "sudo systemctl reboot || sudo reboot"


class NodeState(str, Enum):
    """Phases of the per-node reboot lifecycle."""

    START = "start"
    CORDONING = "cordoning"
    DRAINING = "draining"
    REBOOTING = "rebooting"
    VERIFYING_REBOOT = "verifying-reboot"
    VERIFYING_READY = "verifying-ready"
    UNCORDONING = "uncordoning"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (NodeState.DONE, NodeState.FAILED)


class RunConfig(BaseModel):
    """Settings for a single kube-reboot invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Node selection
    nodes: list[str] = Field(default_factory=list)
    nodes_file: Path | None = None
    all_nodes: bool = False
    exclude_control_plane: bool = False
    exclude_nodes: list[str] = Field(default_factory=list)

    dry_run: bool = False
    reboot_command: str = DEFAULT_REBOOT_COMMAND

    # Durations, in seconds
    ready_timeout: float = 180
    boot_id_timeout: float = 300
    drain_timeout: float = 600
    poll_interval: float = 10
    eviction_grace_period: int = 30
    initial_wait: float = 5

    require_reboot_verification: bool = True

    # SSH
    ssh_user: str | None = None
    ssh_identity_file: str | None = None
    ssh_options: str = DEFAULT_SSH_OPTIONS
    ssh_host_template: str = "{node}"

    # Cluster access
    kubeconfig: str | None = None
    kube_context: str | None = None

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Validate poll interval is strictly positive."""
        if v <= 0:
            raise ValueError("poll_interval must be greater than 0")
        return v

    @field_validator(
        "ready_timeout", "boot_id_timeout", "drain_timeout", "eviction_grace_period", "initial_wait"
    )
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        """Validate durations are not negative."""
        if v < 0:
            raise ValueError("durations cannot be negative")
        return v

    @field_validator("ssh_host_template")
    @classmethod
    def validate_host_template(cls, v: str) -> str:
        """Validate the host template contains the node placeholder."""
        if "{node}" not in v:
            raise ValueError(f"ssh_host_template '{v}' must contain the '{{node}}' placeholder")
        return v

    @field_validator("reboot_command")
    @classmethod
    def validate_reboot_command(cls, v: str) -> str:
        """Validate reboot command is not empty."""
        if not v.strip():
            raise ValueError("reboot_command cannot be empty")
        return v

    @field_validator("nodes", "exclude_nodes")
    @classmethod
    def strip_node_names(cls, v: list[str]) -> list[str]:
        """Drop surrounding whitespace and empty entries."""
        return [name.strip() for name in v if name.strip()]

    @staticmethod
    def read_defaults(path: str | Path) -> dict:
        """Read run defaults from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or is not a mapping
        """
        import yaml

        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}", f"Expected location: {path.absolute()}"
            )
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {path}", str(e))

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping of settings",
                "Use keys such as poll_interval, ready_timeout or ssh_user",
            )
        return data

    @classmethod
    def load(cls, path: str | Path) -> "RunConfig":
        """Load configuration from YAML file."""
        return cls(**cls.read_defaults(path))

    def save(self, path: str | Path) -> None:
        """Save configuration to YAML file."""
        import yaml

        with open(path, "w") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)


class NodeOutcome(BaseModel):
    """Terminal result of the lifecycle for one node."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    node: str
    state: NodeState
    failed_phase: NodeState | None = None
    error: KubeRebootError | None = None
    warnings: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state == NodeState.DONE


class RunResult(BaseModel):
    """Aggregate result of processing every target node."""

    outcomes: list[NodeOutcome] = Field(default_factory=list)
    missing_exclusions: list[str] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def failed_nodes(self) -> list[str]:
        return [o.node for o in self.outcomes if not o.succeeded]

    @property
    def failed(self) -> int:
        return len(self.failed_nodes)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0
