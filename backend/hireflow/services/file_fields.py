"""Locate file references inside step section data.

Step sections are plain JSON-compatible dicts. File fields are named by
path expressions relative to the section:

    "sin_photo"                  a single asset
    "passport_photos[]"          every item of a list of assets
    "licenses[].front_photo"     one asset inside every list item
    "fast_card.front_photo"      an asset inside an optional object

Missing or null intermediate values simply yield no slots.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from hireflow.core.errors import ValidationError
from hireflow.storage.base import FileAsset
from hireflow.storage.keys import StorageFolder

Location = tuple[str | int, ...]
FileFieldMap = Mapping[str, StorageFolder]
"""Path expression -> folder its uploads are finalized into."""


@dataclass(frozen=True)
class AssetSlot:
    """One file reference found in section data.

    Attributes:
        path: Path expression that matched.
        location: Concrete keys/indices from the section root.
        asset: Parsed reference.
        folder: Destination folder for the field.
    """

    path: str
    location: Location
    asset: FileAsset
    folder: StorageFolder


def _find(node: Any, tokens: list[str], location: Location) -> list[tuple[Location, Any]]:
    if not tokens:
        return [] if node is None else [(location, node)]

    token = tokens[0]
    is_list = token.endswith("[]")
    name = token[:-2] if is_list else token
    if not isinstance(node, dict) or node.get(name) is None:
        return []

    child = node[name]
    if not is_list:
        return _find(child, tokens[1:], (*location, name))
    if not isinstance(child, list):
        return []
    found: list[tuple[Location, Any]] = []
    for index, item in enumerate(child):
        found.extend(_find(item, tokens[1:], (*location, name, index)))
    return found


def collect_assets(section: Mapping[str, Any] | None, file_fields: FileFieldMap) -> list[AssetSlot]:
    """Find and parse every file reference in a section.

    Raises:
        ValidationError: If a file field holds something that is not a
            valid FileAsset.
    """
    if not section:
        return []

    slots: list[AssetSlot] = []
    for path, folder in file_fields.items():
        for location, node in _find(section, path.split("."), ()):
            try:
                asset = FileAsset.model_validate(node)
            except PydanticValidationError as exc:
                raise ValidationError(
                    message="Invalid file reference",
                    details=[
                        {"field": ".".join(str(part) for part in location), "error": e["msg"]}
                        for e in exc.errors()
                    ],
                ) from exc
            slots.append(AssetSlot(path=path, location=location, asset=asset, folder=folder))
    return slots


def set_at(section: dict, location: Location, value: Any) -> None:
    """Replace the value at a concrete location (in place)."""
    node: Any = section
    for part in location[:-1]:
        node = node[part]
    node[location[-1]] = value
