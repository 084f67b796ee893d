"""
Dotted path accessor utilities.

Helpers to read and write values in nested dict structures using configuration
keys such as "EmailTransport.default.port".
"""
from typing import Any, Dict, List, Mapping, Optional


class DotPath:
    """Utility for working with dotted paths on nested mappings."""

    @staticmethod
    def tokenize(path: str) -> List[str]:
        """Split a dotted path into keys, ignoring empty segments.

        Example: "App.default..locale" -> ["App", "default", "locale"]
        """
        return [part for part in path.split(".") if part]

    @staticmethod
    def get(obj: Any, path: Optional[str], default: Any = None) -> Any:
        """Retrieve a nested value using a dotted path.

        If the path is None or empty, returns the object itself.
        Returns `default` when any step is missing or is not a mapping.
        """
        if path is None or path == "":
            return obj
        cur: Any = obj
        for t in DotPath.tokenize(path):
            if isinstance(cur, Mapping) and t in cur:
                cur = cur[t]
            else:
                return default
        return cur

    @staticmethod
    def has(obj: Any, path: str) -> bool:
        marker = object()
        return DotPath.get(obj, path, marker) is not marker

    @staticmethod
    def set(obj: Dict[str, Any], path: str, value: Any) -> None:
        """Set a value into a dict using a dotted path; creates dicts as needed.

        A scalar found on the way is replaced by a dict, so "App" = "x" followed by
        "App.name" = "y" leaves {"App": {"name": "y"}}.
        """
        tokens = DotPath.tokenize(path or "")
        if not tokens:
            raise ValueError("Empty path")
        cur = obj
        for t in tokens[:-1]:
            if not isinstance(cur.get(t), dict):
                cur[t] = {}
            cur = cur[t]
        cur[tokens[-1]] = value
