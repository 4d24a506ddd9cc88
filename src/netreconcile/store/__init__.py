"""Object stores for the appliance REST surface."""
from .base import ApplianceConfig, ObjectStore
from .recording import RecordingObjectStore
from .rest import RestObjectStore

__all__ = [
    "ApplianceConfig",
    "ObjectStore",
    "RecordingObjectStore",
    "RestObjectStore",
]
