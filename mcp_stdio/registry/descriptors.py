"""Tool and resource descriptors, and the builders that finalize them."""

import inspect
from typing import Any, Callable, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..protocol.messages import (
    ResourceDefinition,
    ResourceTemplateDefinition,
    ToolDefinition,
)

DEFAULT_MIME_TYPE = "text/plain"


def default_input_schema() -> Dict[str, Any]:
    return {"type": "object", "properties": {}}


class DescriptorValidationError(ValueError):
    """Raised when a descriptor is incomplete. Happens at registration, never per request."""
    pass


def _check_handler(handler: Any, arity: int, kind: str) -> None:
    """Check that ``handler`` can be called with ``arity`` positional arguments."""
    if handler is None:
        raise DescriptorValidationError("Handler must be provided")
    if not callable(handler):
        raise DescriptorValidationError(f"{kind} handler must be callable")
    if inspect.iscoroutinefunction(handler):
        raise DescriptorValidationError(f"{kind} handler must not be a coroutine function")

    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        # Some builtins do not expose a signature; accept them as-is.
        return

    try:
        signature.bind(*([None] * arity))
    except TypeError:
        noun = "argument" if arity == 1 else "arguments"
        raise DescriptorValidationError(
            f"{kind} handler must accept {arity} positional {noun}, got {signature}"
        )


class ToolDescriptor(BaseModel):
    """A finalized tool: ``handler(arguments: dict) -> dict | str``."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=default_input_schema)
    handler: Callable[..., Any] = Field(exclude=True, repr=False)

    def validate_shape(self) -> None:
        if not self.name:
            raise DescriptorValidationError("Tool name cannot be empty")
        _check_handler(self.handler, 1, "Tool")

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


class ResourceDescriptor(BaseModel):
    """A finalized resource: ``handler() -> str``."""
    model_config = ConfigDict(frozen=True)

    uri: str
    name: str
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE
    handler: Callable[..., Any] = Field(exclude=True, repr=False)

    def validate_shape(self) -> None:
        if not self.uri:
            raise DescriptorValidationError("Resource URI cannot be empty")
        if not self.name:
            raise DescriptorValidationError("Name must be provided")
        _check_handler(self.handler, 0, "Resource")

    def to_definition(self) -> ResourceDefinition:
        return ResourceDefinition(
            uri=self.uri,
            name=self.name,
            description=self.description,
            mimeType=self.mime_type,
        )


class ResourceTemplateDescriptor(BaseModel):
    """A finalized resource template: ``handler(variables: dict) -> str``."""
    model_config = ConfigDict(frozen=True)

    uri_template: str
    name: str
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE
    handler: Callable[..., Any] = Field(exclude=True, repr=False)

    def validate_shape(self) -> None:
        if not self.uri_template:
            raise DescriptorValidationError("Resource template URI cannot be empty")
        if not self.name:
            raise DescriptorValidationError("Name must be provided")
        _check_handler(self.handler, 1, "Resource template")

    def to_definition(self) -> ResourceTemplateDefinition:
        return ResourceTemplateDefinition(
            uriTemplate=self.uri_template,
            name=self.name,
            description=self.description,
            mimeType=self.mime_type,
        )


class _DescriptorBuilder:
    """Shared setters. Every setter returns the builder so calls can be chained."""

    def __init__(self) -> None:
        self._name = ""
        self._description = ""
        self._handler: Optional[Callable[..., Any]] = None

    def description(self, text: str):
        self._description = text
        return self

    def handler(self, func: Callable[..., Any]):
        self._handler = func
        return self

    def _require_handler(self, arity: int, kind: str) -> Callable[..., Any]:
        _check_handler(self._handler, arity, kind)
        return self._handler


class ToolBuilder(_DescriptorBuilder):
    """Builds a ToolDescriptor.

    Example::

        descriptor = (
            ToolBuilder("add")
            .description("Add two numbers")
            .input_schema({"type": "object", "required": ["a", "b"]})
            .handler(lambda args: {"content": [{"type": "text", "text": str(args["a"] + args["b"])}]})
            .build()
        )
    """

    def __init__(self, name: str):
        super().__init__()
        if not name:
            raise DescriptorValidationError("Tool name cannot be empty")
        self._name = name
        self._input_schema = default_input_schema()

    def input_schema(self, schema: Dict[str, Any]) -> "ToolBuilder":
        self._input_schema = schema
        return self

    def build(self) -> ToolDescriptor:
        descriptor = ToolDescriptor(
            name=self._name,
            description=self._description,
            input_schema=self._input_schema,
            handler=self._require_handler(1, "Tool"),
        )
        descriptor.validate_shape()
        return descriptor


class ResourceBuilder(_DescriptorBuilder):
    """Builds a ResourceDescriptor for one exact URI."""

    def __init__(self, uri: str):
        super().__init__()
        if not uri:
            raise DescriptorValidationError("Resource URI cannot be empty")
        self._uri = uri
        self._mime_type = DEFAULT_MIME_TYPE

    def name(self, value: str) -> "ResourceBuilder":
        self._name = value
        return self

    def mime_type(self, value: str) -> "ResourceBuilder":
        self._mime_type = value
        return self

    def build(self) -> ResourceDescriptor:
        handler = self._require_handler(0, "Resource")
        if not self._name:
            raise DescriptorValidationError("Name must be provided")
        descriptor = ResourceDescriptor(
            uri=self._uri,
            name=self._name,
            description=self._description,
            mime_type=self._mime_type,
            handler=handler,
        )
        descriptor.validate_shape()
        return descriptor


class ResourceTemplateBuilder(_DescriptorBuilder):
    """Builds a ResourceTemplateDescriptor for a ``/path/{var}`` pattern."""

    def __init__(self, uri_template: str):
        super().__init__()
        if not uri_template:
            raise DescriptorValidationError("Resource template URI cannot be empty")
        self._uri_template = uri_template
        self._mime_type = DEFAULT_MIME_TYPE

    def name(self, value: str) -> "ResourceTemplateBuilder":
        self._name = value
        return self

    def mime_type(self, value: str) -> "ResourceTemplateBuilder":
        self._mime_type = value
        return self

    def build(self) -> ResourceTemplateDescriptor:
        handler = self._require_handler(1, "Resource template")
        if not self._name:
            raise DescriptorValidationError("Name must be provided")
        descriptor = ResourceTemplateDescriptor(
            uri_template=self._uri_template,
            name=self._name,
            description=self._description,
            mime_type=self._mime_type,
            handler=handler,
        )
        descriptor.validate_shape()
        return descriptor
