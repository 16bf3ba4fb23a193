"""
Package metadata consumed by the `list` command and handed to every plugin.

The bundled about.json plays the role of a static package descriptor:
name, author and an ordered list of contributors. The version always
comes from dimcli.__version__ unless the file overrides it.
"""

import json
import logging
import re
from importlib import resources
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dimcli import __version__

logger = logging.getLogger(__name__)

# "Name <email> (url)", both parts optional
_PERSON_PATTERN = re.compile(
    r"^\s*(?P<name>[^<(]+?)\s*(?:<(?P<email>[^>]*)>)?\s*(?:\((?P<url>[^)]*)\))?\s*$"
)


class Contributor(BaseModel):
    """A person credited in the `list` output."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def parse_person_string(cls, data: Any) -> Any:
        """Accept the npm-style "Name <email> (url)" shorthand."""
        if not isinstance(data, str):
            return data
        match = _PERSON_PATTERN.match(data)
        if not match:
            raise ValueError(f"Invalid contributor: {data!r}")
        return {key: value for key, value in match.groupdict().items() if value}

    @property
    def display(self) -> str:
        return self.name + (f"<{self.email}>" if self.email else "")


class PackageInfo(BaseModel):
    """Static package descriptor."""

    model_config = ConfigDict(frozen=True)

    name: str = "dim-cli"
    version: str = __version__
    description: str = ""
    author: str = ""
    contributors: List[Contributor] = Field(default_factory=list)
    homepage: Optional[str] = None
    license: Optional[str] = None

    @classmethod
    def from_file(cls, path: Path) -> "PackageInfo":
        """
        Load package metadata from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid package metadata
        """
        if not path.exists():
            raise FileNotFoundError(f"Package metadata not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return cls(**data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in package metadata {path}: {e}")
        except Exception as e:
            raise ValueError(f"Failed to parse package metadata {path}: {e}")


def load_package_info(path: Optional[Path] = None) -> PackageInfo:
    """Load the package metadata, defaulting to the bundled about.json."""
    if path is not None:
        return PackageInfo.from_file(path)

    source = resources.files("dimcli") / "about.json"
    data = json.loads(source.read_text(encoding="utf-8"))
    logger.debug("Loaded bundled package metadata for %s", data.get("name"))
    return PackageInfo(**data)
