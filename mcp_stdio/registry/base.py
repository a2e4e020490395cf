"""Registry of tools, resources and resource templates."""

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import structlog
from pydantic import BaseModel

from ..protocol.messages import ReadResourceResult, ResourceContents, ToolCallResult
from .descriptors import (
    DescriptorValidationError,
    ResourceDescriptor,
    ResourceTemplateDescriptor,
    ToolDescriptor,
)
from .pagination import paginate
from .templates import UriTemplate

logger = structlog.get_logger()


class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    HANDLER_ERROR = "handler_error"


class RegistryFailure(BaseModel):
    """Why a registry operation produced no value."""
    kind: FailureKind
    message: str
    data: Optional[Dict[str, Any]] = None


class RegistryResult(BaseModel):
    """Either a value or a failure, never both."""
    value: Optional[Dict[str, Any]] = None
    failure: Optional[RegistryFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Dict[str, Any]) -> "RegistryResult":
        return cls(value=value)

    @classmethod
    def error(
        cls, kind: FailureKind, message: str, data: Optional[Dict[str, Any]] = None
    ) -> "RegistryResult":
        return cls(failure=RegistryFailure(kind=kind, message=message, data=data))


_JSON_TYPES = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}


def _check_type(value: Any, expected_type: str) -> bool:
    """Check if value matches expected JSON schema type."""
    expected_python_type = _JSON_TYPES.get(expected_type)
    if expected_python_type is None:
        return True  # Unknown type, skip validation
    if isinstance(value, bool) and expected_type in ("integer", "number"):
        return False
    return isinstance(value, expected_python_type)


def _validate_arguments(schema: Dict[str, Any], arguments: Dict[str, Any]) -> Optional[str]:
    """Return an error message if ``arguments`` do not satisfy ``schema``."""
    properties = schema.get("properties", {})

    for field in schema.get("required", []):
        if field not in arguments:
            return f"Missing required argument: {field}"

    for field, value in arguments.items():
        if field not in properties:
            continue
        expected = properties[field].get("type")
        if isinstance(expected, list):
            matches = any(_check_type(value, t) for t in expected)
        else:
            matches = not expected or _check_type(value, expected)
        if not matches:
            return f"Argument {field}: expected {expected}, got {type(value).__name__}"

    return None


def _to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    if isinstance(content, (dict, list)):
        return json.dumps(content, indent=2)
    return str(content)


def _to_tool_result(result: Any) -> Dict[str, Any]:
    if isinstance(result, dict):
        return result
    if isinstance(result, ToolCallResult):
        return result.model_dump()
    return ToolCallResult(content=[{"type": "text", "text": _to_text(result)}]).model_dump()


class ResourceRegistry:
    """Registry for tools, resources and resource templates.

    Entries keep insertion order; registering under an existing key replaces
    the entry in place. Not thread-safe: populate it before serving.
    """

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._resources: Dict[str, ResourceDescriptor] = {}
        self._templates: Dict[str, ResourceTemplateDescriptor] = {}
        self._compiled_templates: Dict[str, UriTemplate] = {}

    def register_tool(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        """Register a finalized tool descriptor."""
        if not isinstance(descriptor, ToolDescriptor):
            raise DescriptorValidationError(f"Expected ToolDescriptor, got {type(descriptor).__name__}")
        descriptor.validate_shape()

        self._tools[descriptor.name] = descriptor
        logger.debug("Tool registered", tool=descriptor.name)
        return descriptor

    def register_resource(self, descriptor: ResourceDescriptor) -> ResourceDescriptor:
        """Register a finalized resource descriptor under its exact URI."""
        if not isinstance(descriptor, ResourceDescriptor):
            raise DescriptorValidationError(
                f"Expected ResourceDescriptor, got {type(descriptor).__name__}"
            )
        descriptor.validate_shape()

        self._resources[descriptor.uri] = descriptor
        logger.debug("Resource registered", uri=descriptor.uri)
        return descriptor

    def register_resource_template(
        self, descriptor: ResourceTemplateDescriptor
    ) -> ResourceTemplateDescriptor:
        """Register a finalized resource template. Order of registration is match order."""
        if not isinstance(descriptor, ResourceTemplateDescriptor):
            raise DescriptorValidationError(
                f"Expected ResourceTemplateDescriptor, got {type(descriptor).__name__}"
            )
        descriptor.validate_shape()

        self._templates[descriptor.uri_template] = descriptor
        self._compiled_templates[descriptor.uri_template] = UriTemplate(descriptor.uri_template)
        logger.debug("Resource template registered", uri_template=descriptor.uri_template)
        return descriptor

    def get_tool(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def get_resource(self, uri: str) -> Optional[ResourceDescriptor]:
        return self._resources.get(uri)

    def match_template(
        self, uri: str
    ) -> Optional[Tuple[ResourceTemplateDescriptor, Dict[str, str]]]:
        """Return the first registered template matching ``uri`` with its bindings."""
        for key, descriptor in self._templates.items():
            values = self._compiled_templates[key].match(uri)
            if values is not None:
                return descriptor, values
        return None

    def read_resource(self, uri: str) -> RegistryResult:
        """Read a resource by exact URI, falling back to template matching."""
        resource = self._resources.get(uri)
        if resource is not None:
            try:
                content = resource.handler()
            except Exception as e:
                logger.error("Resource handler failed", uri=uri, error=str(e))
                return RegistryResult.error(
                    FailureKind.HANDLER_ERROR, f"Error reading resource: {e}", {"uri": uri}
                )
            return RegistryResult.success(self._contents(uri, resource.mime_type, content))

        matched = self.match_template(uri)
        if matched is not None:
            template, values = matched
            try:
                content = template.handler(values)
            except Exception as e:
                logger.error(
                    "Resource template handler failed",
                    uri=uri,
                    uri_template=template.uri_template,
                    error=str(e),
                )
                return RegistryResult.error(
                    FailureKind.HANDLER_ERROR,
                    f"Error reading resource from template: {e}",
                    {"uri": uri},
                )
            return RegistryResult.success(self._contents(uri, template.mime_type, content))

        return RegistryResult.error(FailureKind.NOT_FOUND, f"Resource not found: {uri}", {"uri": uri})

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> RegistryResult:
        """Validate ``arguments`` against the tool's input schema and invoke it."""
        tool = self._tools.get(name)
        if tool is None:
            return RegistryResult.error(FailureKind.NOT_FOUND, f"Tool not found: {name}", {"name": name})

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return RegistryResult.error(
                FailureKind.INVALID_ARGUMENTS, "Tool arguments must be an object"
            )

        problem = _validate_arguments(tool.input_schema, arguments)
        if problem:
            logger.warning("Tool input validation failed", tool=name, error=problem)
            return RegistryResult.error(FailureKind.INVALID_ARGUMENTS, problem)

        try:
            result = tool.handler(arguments)
        except Exception as e:
            logger.error("Tool execution failed", tool=name, error=str(e))
            return RegistryResult.error(
                FailureKind.HANDLER_ERROR, f"Error calling tool {name}: {e}"
            )

        return RegistryResult.success(_to_tool_result(result))

    def list_tools(self, cursor: Any = None, page_size: Optional[int] = None) -> Dict[str, Any]:
        page = paginate(list(self._tools.values()), cursor, page_size)
        return self._page_result(
            "tools", [t.to_definition().model_dump() for t in page.items], page.next_cursor
        )

    def list_resources(self, cursor: Any = None, page_size: Optional[int] = None) -> Dict[str, Any]:
        page = paginate(list(self._resources.values()), cursor, page_size)
        return self._page_result(
            "resources", [r.to_definition().model_dump() for r in page.items], page.next_cursor
        )

    def list_resource_templates(
        self, cursor: Any = None, page_size: Optional[int] = None
    ) -> Dict[str, Any]:
        page = paginate(list(self._templates.values()), cursor, page_size)
        return self._page_result(
            "resourceTemplates",
            [t.to_definition().model_dump() for t in page.items],
            page.next_cursor,
        )

    @staticmethod
    def _page_result(key: str, items: List[Dict[str, Any]], next_cursor: Optional[str]) -> Dict[str, Any]:
        result: Dict[str, Any] = {key: items}
        if next_cursor is not None:
            result["nextCursor"] = next_cursor
        return result

    @staticmethod
    def _contents(uri: str, mime_type: str, content: Any) -> Dict[str, Any]:
        return ReadResourceResult(
            contents=[ResourceContents(uri=uri, mimeType=mime_type, text=_to_text(content))]
        ).model_dump()
