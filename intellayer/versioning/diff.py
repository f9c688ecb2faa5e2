"""Field-level diff between two version configurations.

Used by the promotion preview and the version compare endpoint. Nested
objects are walked key by key with dot paths (``config.model.temperature``);
arrays are compared as whole values.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from intellayer.models.version import ProcessVersion

ChangeType = Literal["added", "removed", "modified"]

FIRST_DEPLOYMENT_SUMMARY = "First deployment to production"
NO_CHANGES_SUMMARY = "No changes detected"


@dataclass(frozen=True)
class VersionChange:
    path: str
    type: ChangeType
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class ChangeCount:
    added: int = 0
    removed: int = 0
    modified: int = 0

    @property
    def total(self) -> int:
        return self.added + self.removed + self.modified


@dataclass(frozen=True)
class VersionDiff:
    changes: list[VersionChange] = field(default_factory=list)
    summary: str = NO_CHANGES_SUMMARY
    change_count: ChangeCount = field(default_factory=ChangeCount)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)


def compare_versions(new: ProcessVersion, old: ProcessVersion | None) -> VersionDiff:
    """Diff ``new`` against ``old``; ``old=None`` means nothing is deployed yet."""
    if old is None:
        return VersionDiff(summary=FIRST_DEPLOYMENT_SUMMARY)
    return compare_configs(new.config or {}, old.config or {})


def compare_configs(new: dict[str, Any], old: dict[str, Any]) -> VersionDiff:
    changes: list[VersionChange] = []
    _compare_objects(new, old, "config", changes)

    count = ChangeCount(
        added=sum(1 for c in changes if c.type == "added"),
        removed=sum(1 for c in changes if c.type == "removed"),
        modified=sum(1 for c in changes if c.type == "modified"),
    )
    return VersionDiff(changes=changes, summary=_summarize(count), change_count=count)


def _compare_objects(new: dict, old: dict, base_path: str,
                     changes: list[VersionChange]) -> None:
    keys = list(new) + [k for k in old if k not in new]
    for key in keys:
        path = f"{base_path}.{key}"
        if key not in old:
            changes.append(VersionChange(path, "added", None, new[key]))
            continue
        if key not in new:
            changes.append(VersionChange(path, "removed", old[key], None))
            continue

        new_val, old_val = new[key], old[key]
        if isinstance(new_val, dict) and isinstance(old_val, dict):
            _compare_objects(new_val, old_val, path, changes)
        elif not _values_equal(new_val, old_val):
            changes.append(VersionChange(path, "modified", old_val, new_val))


def _values_equal(a: Any, b: Any) -> bool:
    # bool is an int subclass; JSON true and 1 are different values.
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if type(a) is not type(b):
        return False
    if isinstance(a, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(_values_equal(a[k], b[k]) for k in a)
    return a == b


def _plural(n: int, verb: str) -> str:
    return f"{n} field{'s' if n > 1 else ''} {verb}"


def _summarize(count: ChangeCount) -> str:
    if count.total == 0:
        return NO_CHANGES_SUMMARY
    parts = []
    if count.modified:
        parts.append(_plural(count.modified, "modified"))
    if count.added:
        parts.append(_plural(count.added, "added"))
    if count.removed:
        parts.append(_plural(count.removed, "removed"))
    return ", ".join(parts)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def format_field_path(path: str) -> str:
    """``config.outputSchema.maxTokens`` -> ``Output Schema → Max Tokens``."""
    clean = path.removeprefix("config.")
    parts = []
    for part in clean.split("."):
        spaced = _CAMEL_BOUNDARY.sub(r" \1", part)
        parts.append((spaced[:1].upper() + spaced[1:]).strip())
    return " → ".join(parts)


def format_value_for_display(value: Any, max_length: int = 100) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        if len(value) > max_length:
            return f'"{value[:max_length]}..."'
        return f'"{value}"'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        return f"[{len(value)} items]"
    if isinstance(value, dict):
        return f"{{{len(value)} fields}}"
    return str(value)
