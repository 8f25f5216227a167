"""Mibo data models - re-exports all public model classes."""

from mibo.models.config import (
    Credentials,
    DeliveryOptions,
    MetadataFields,
    ProjectConfig,
)
from mibo.models.trace import (
    DeliveryState,
    FailureStrategy,
    TraceAnnotation,
    TracePayload,
    WorkflowIdentity,
)

__all__ = [
    "Credentials",
    "DeliveryOptions",
    "DeliveryState",
    "FailureStrategy",
    "MetadataFields",
    "ProjectConfig",
    "TraceAnnotation",
    "TracePayload",
    "WorkflowIdentity",
]
