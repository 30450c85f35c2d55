"""
Durable checkpoint of deployed module addresses and funded sinks.
"""
from .checkpoint_store import CheckpointStore, DeploymentRecord

__all__ = ["CheckpointStore", "DeploymentRecord"]
