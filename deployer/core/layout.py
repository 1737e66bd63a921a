"""Build-output layout conventions.

Both the publisher and the resolver locate artifacts through this module, so
the list of places a build may land is defined exactly once.
"""

import re
from pathlib import Path

# Conventional output directories, in search order
BUILD_OUTPUT_DIRS: tuple[str, ...] = ("dist", "build", "public", "out", "_site")

# Output directories followed by the project root itself
CANDIDATE_LAYOUT: tuple[str, ...] = BUILD_OUTPUT_DIRS + ("",)

# Never copied into the serving root and never searched for entry points
EXCLUDED_DIRS: frozenset[str] = frozenset({"node_modules", ".git"})

_TIMESTAMP_SUFFIX = re.compile(r"-\d+$")


def clean_name(deployment_id: str) -> str:
    """Strip a trailing ``-{digits}`` timestamp from a deployment id.

    The result is the stable serving key; underscores are preserved.
    """
    stripped = _TIMESTAMP_SUFFIX.sub("", deployment_id)
    return stripped or deployment_id


def display_name(project_name: str) -> str:
    """Human-facing project name: timestamp removed, underscores as spaces."""
    return clean_name(project_name).replace("_", " ")


def find_build_dir(source_dir: Path) -> str | None:
    """Return the first candidate output directory present under ``source_dir``."""
    for name in BUILD_OUTPUT_DIRS:
        if (source_dir / name).is_dir():
            return name
    return None


def find_index_html(root: Path) -> Path | None:
    """Locate the entry ``index.html`` of a project tree.

    Checks the root, each build output directory, then one level of nested
    subdirectories (their own root and build output directories).
    """
    found = _index_in(root)
    if found:
        return found

    try:
        children = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError:
        return None

    for child in children:
        if child.name in EXCLUDED_DIRS:
            continue
        found = _index_in(child)
        if found:
            return found
    return None


def _index_in(directory: Path) -> Path | None:
    candidate = directory / "index.html"
    if candidate.is_file():
        return candidate
    for name in BUILD_OUTPUT_DIRS:
        candidate = directory / name / "index.html"
        if candidate.is_file():
            return candidate
    return None
