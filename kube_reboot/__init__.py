"""Safe, sequential reboot cycling for Kubernetes nodes."""

__version__ = "0.1.0"
