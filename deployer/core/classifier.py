"""Project type classification from marker files."""

from pathlib import Path

from deployer.models.deployment import ProjectType

# Marker files in priority order; the first match wins
MARKERS: tuple[tuple[str, ProjectType], ...] = (
    ("package.json", ProjectType.NODE),
    ("go.mod", ProjectType.GO),
    ("requirements.txt", ProjectType.PYTHON),
    ("index.html", ProjectType.STATIC),
)

SKIPPED_SUBDIRS = frozenset({"node_modules", ".git", "venv", ".github"})


def detect(directory: Path) -> ProjectType | None:
    """Return the project type indicated by markers directly in ``directory``."""
    for marker, project_type in MARKERS:
        if (directory / marker).is_file():
            return project_type
    return None


def classify(root_dir: Path) -> tuple[Path, ProjectType]:
    """Decide what kind of project lives at ``root_dir``.

    The root is checked first. Failing that, immediate subdirectories are
    checked in name order and the first one with a marker is returned.
    Nothing deeper is ever inspected.

    Returns:
        Tuple of (project directory, project type); ``(root_dir, UNKNOWN)``
        when no marker is found at either depth
    """
    root_dir = Path(root_dir)
    project_type = detect(root_dir)
    if project_type:
        return root_dir, project_type

    try:
        subdirs = sorted(p for p in root_dir.iterdir() if p.is_dir())
    except OSError:
        return root_dir, ProjectType.UNKNOWN

    for subdir in subdirs:
        if subdir.name in SKIPPED_SUBDIRS:
            continue
        project_type = detect(subdir)
        if project_type:
            return subdir, project_type

    return root_dir, ProjectType.UNKNOWN
