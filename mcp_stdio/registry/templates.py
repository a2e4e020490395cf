"""URI template matching for resource templates."""

import re
from typing import Dict, List, Optional

_VARIABLE_SEGMENT = re.compile(r"^\{([^{}/]+)\}$")


class UriTemplate:
    """A ``/`` separated pattern whose ``{name}`` segments bind one path segment each.

    Only a segment that is entirely ``{name}`` is a variable; anything else,
    including ``file.{ext}``, is compared literally.
    """

    def __init__(self, template: str):
        self.template = template
        self.segments: List[str] = template.split("/")
        self._variables: List[Optional[str]] = []
        for segment in self.segments:
            match = _VARIABLE_SEGMENT.match(segment)
            self._variables.append(match.group(1) if match else None)

    @property
    def variables(self) -> List[str]:
        return [name for name in self._variables if name is not None]

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        """Return the bound variables, or None when ``uri`` does not fit."""
        parts = uri.split("/")
        if len(parts) != len(self.segments):
            return None

        values: Dict[str, str] = {}
        for literal, variable, part in zip(self.segments, self._variables, parts):
            if variable is not None:
                values[variable] = part
            elif literal != part:
                return None
        return values

    def __repr__(self) -> str:
        return f"UriTemplate({self.template!r})"
