"""Descriptors, URI templates and the tool/resource registry."""

from .base import FailureKind, RegistryFailure, RegistryResult, ResourceRegistry
from .descriptors import (
    DescriptorValidationError,
    ResourceBuilder,
    ResourceDescriptor,
    ResourceTemplateBuilder,
    ResourceTemplateDescriptor,
    ToolBuilder,
    ToolDescriptor,
)
from .pagination import Page, paginate, parse_cursor
from .templates import UriTemplate

__all__ = [
    "ResourceRegistry",
    "RegistryResult",
    "RegistryFailure",
    "FailureKind",
    "DescriptorValidationError",
    "ToolDescriptor",
    "ResourceDescriptor",
    "ResourceTemplateDescriptor",
    "ToolBuilder",
    "ResourceBuilder",
    "ResourceTemplateBuilder",
    "UriTemplate",
    "Page",
    "paginate",
    "parse_cursor",
]
