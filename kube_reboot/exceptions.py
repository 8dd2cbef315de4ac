"""Custom exceptions for kube-reboot."""


class KubeRebootError(Exception):
    """Base exception for all kube-reboot errors."""

    def __init__(self, message: str, details: str = None):
        """Initialize the exception.

        Args:
            message: Main error message
            details: Additional details or suggestions
        """
        self.message = message
        self.details = details
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message.

        Returns:
            Formatted error message with details
        """
        if self.details:
            return f"{self.message}\n\nDetails: {self.details}"
        return self.message


class ConfigurationError(KubeRebootError):
    """Exception raised when the run cannot start (no nodes, bad settings)."""

    pass


class ClusterAPIError(KubeRebootError):
    """Exception raised for Kubernetes API errors."""

    pass


class TransportError(KubeRebootError):
    """Exception raised when a remote command could not be executed."""

    pass


class PhaseTimeoutError(KubeRebootError):
    """Exception raised when a lifecycle phase does not finish before its deadline."""

    def __init__(self, node: str, phase: str, timeout: float, details: str = None):
        """Initialize the exception.

        Args:
            node: Name of the node being processed
            phase: Lifecycle phase that timed out
            timeout: Timeout that was exceeded, in seconds
            details: Additional details or suggestions
        """
        self.node = node
        self.phase = phase
        self.timeout = timeout
        message = f"Timed out after {timeout:g}s in phase '{phase}' on node '{node}'"
        super().__init__(message, details)
