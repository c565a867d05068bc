"""Package manifest model"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PackageManifest:
    """An in-memory package.json, remembering the text it was loaded from."""
    key: str
    path: str
    data: Dict[str, Any] = field(default_factory=dict)
    original_text: Optional[str] = None
    folder: str = ""
    rel_path: str = ""

    @property
    def name(self) -> Optional[str]:
        return self.data.get("name")

    @property
    def version(self) -> Optional[str]:
        return self.data.get("version")

    @property
    def private(self) -> bool:
        return bool(self.data.get("private", False))

    def section(self, name: str, create: bool = False) -> Optional[Dict[str, str]]:
        """Return a dependency/scripts section, optionally creating it when missing."""
        value = self.data.get(name)
        if value is None and create:
            value = {}
            self.data[name] = value
        return value

    def serialize(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"

    @property
    def is_dirty(self) -> bool:
        return self.serialize() != self.original_text
