"""Run Kubernetes pods as AWS Fargate tasks through a virtual-kubelet style provider."""

__version__ = "0.1.0"
__all__ = ["__version__"]