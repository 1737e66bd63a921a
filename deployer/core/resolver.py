"""Asset resolution for published projects.

Many independently built single-page apps are served from one listener under
``/projects/{name}/``. Bundlers disagree on where output lands and on whether
the shipped ``index.html`` already points at hashed filenames, so a request
is resolved through a chain of increasingly approximate matches:

1. ``/index.html``: locate the entry page and rewrite dev-mode references
2. ``/src/...``: hand out the compiled bundle in place of a source file
3. the path under each candidate build output directory
4. a hashed file sharing the requested name as a prefix
5. any asset of the same kind in a well-known asset directory
6. SPA fallback to the entry page for extensionless paths
"""

import mimetypes
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from deployer.core.exceptions import AssetNotFoundError
from deployer.core.layout import (
    CANDIDATE_LAYOUT,
    display_name,
    find_build_dir,
    find_index_html,
)
from deployer.core.serving_root import ServingRoot
from deployer.models.published import PublishedProjectInfo
from deployer.utils.logging import get_logger

logger = get_logger(__name__)

INDEX_PATH = "/index.html"

# Asset subdirectories next to an entry page (vite, create-react-app, next export)
ASSET_SUBDIRS: tuple[str, ...] = ("assets", "static", "_next")

# Last-resort directories scanned for an asset of the requested kind
GENERIC_ASSET_DIRS: tuple[str, ...] = ("dist/assets", "build/static", "out/_next")

# Extensions eligible for hashed-filename recovery
HASHED_EXTENSIONS = frozenset({".js", ".css", ".png", ".jpg", ".svg", ".ico"})

# Dev-server entry points left in an unbuilt index.html
DEV_SCRIPT_ENTRIES: tuple[str, ...] = (
    "/src/main.jsx",
    "src/main.jsx",
    "/src/main.tsx",
    "src/main.tsx",
)
DEV_STYLE_ENTRIES: tuple[str, ...] = ("/src/index.css", "src/index.css")

MODULE_SRC_PREFIX = 'type="module" src="/src/'

_GENERIC_TARGETS = {
    ".js": ".js",
    ".jsx": ".js",
    ".ts": ".js",
    ".tsx": ".js",
    ".mjs": ".js",
    ".css": ".css",
    ".svg": ".svg",
    ".png": ".png",
    ".jpg": ".jpg",
    ".jpeg": ".jpeg",
    ".gif": ".gif",
    ".webp": ".webp",
    ".ico": ".ico",
}


@dataclass
class ResolvedAsset:
    """Bytes to serve for a request."""

    content: bytes
    media_type: str
    source: Path
    rewritten: bool = False


def normalize_path(requested_path: str) -> str:
    """Map empty and root requests to ``/index.html`` and ensure a leading slash."""
    if requested_path in ("", "/"):
        return INDEX_PATH
    if not requested_path.startswith("/"):
        return "/" + requested_path
    return requested_path


def files_with_suffix(directory: Path, suffix: str) -> list[Path]:
    """Files under ``directory`` ending in ``suffix``, recursively, in path order."""
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.rglob(f"*{suffix}") if p.is_file())


def pick_bundle(files: list[Path]) -> Path | None:
    """Prefer an ``index``/``main`` entry chunk over other chunks."""
    for file in files:
        if file.name.startswith(("index-", "index.", "main-", "main.")):
            return file
    return files[0] if files else None


def find_asset_dir(index_dir: Path) -> Path | None:
    for name in ASSET_SUBDIRS:
        candidate = index_dir / name
        if candidate.is_dir():
            return candidate
    return None


def rewrite_index_html(html: str, project_root: Path, index_dir: Path, project_name: str) -> str:
    """Point dev-mode and root-absolute references at the published assets.

    URLs take the form ``/projects/{name}/{path relative to project root}``.
    """
    asset_dir = find_asset_dir(index_dir)
    if asset_dir is None:
        return html

    base = f"/projects/{project_name}/"
    assets_prefix = base + asset_dir.relative_to(project_root).as_posix()

    js_file = pick_bundle(files_with_suffix(asset_dir, ".js"))
    if js_file is not None:
        url = base + js_file.relative_to(project_root).as_posix()
        for entry in DEV_SCRIPT_ENTRIES:
            html = html.replace(entry, url)

    css_files = files_with_suffix(asset_dir, ".css")
    if css_files:
        url = base + css_files[0].relative_to(project_root).as_posix()
        for entry in DEV_STYLE_ENTRIES:
            html = html.replace(entry, url)

    html = html.replace(MODULE_SRC_PREFIX, f'type="module" src="{assets_prefix}/')

    # Bundles built without a base path reference /assets/... at the site root
    html = html.replace(f'="/{asset_dir.name}/', f'="{assets_prefix}/')
    return html


class AssetResolver:
    """Resolves requests against the projects published in a serving root."""

    def __init__(self, serving_root: ServingRoot):
        self.serving_root = serving_root

    def resolve(self, project_name: str, requested_path: str) -> ResolvedAsset:
        """Find what to serve for ``requested_path`` in ``project_name``.

        The project's current generation is leased for the whole call, so a
        concurrent republish cannot remove files mid-resolution.

        Raises:
            AssetNotFoundError: If nothing matches
        """
        path = normalize_path(requested_path)
        with self.serving_root.lease(project_name) as root:
            if root is None:
                raise AssetNotFoundError(path)
            asset = self._resolve_in(root, project_name, path)

        if asset is None:
            raise AssetNotFoundError(path)
        logger.debug(
            "resolver.resolved",
            project=project_name,
            path=path,
            source=asset.source.name,
            rewritten=asset.rewritten,
        )
        return asset

    def list_projects(self) -> list[PublishedProjectInfo]:
        """Published projects that have something to serve."""
        projects = []
        for name, _ in self.serving_root.list_projects():
            with self.serving_root.lease(name) as root:
                if root is None:
                    continue
                build_dir = find_build_dir(root)
                index = find_index_html(root)
            if build_dir is None and index is None:
                continue
            if build_dir is None:
                relative = index.parent.relative_to(root).as_posix()
                build_dir = "" if relative == "." else relative
            projects.append(
                PublishedProjectInfo(
                    id=name,
                    name=display_name(name),
                    path=f"/projects/{name}",
                    build_dir=build_dir,
                )
            )
        return projects

    def _resolve_in(self, root: Path, project_name: str, path: str) -> ResolvedAsset | None:
        if path == INDEX_PATH:
            page = self._index_page(root, project_name)
            if page is not None:
                return page

        if path.startswith("/src/"):
            asset = self._compiled_for_source(root, path)
            if asset is not None:
                return asset

        relative = PurePosixPath(path.lstrip("/"))

        asset = self._direct(root, relative)
        if asset is not None:
            return asset

        if relative.suffix in HASHED_EXTENSIONS:
            asset = self._hashed(root, relative)
            if asset is not None:
                return asset

        asset = self._generic_scan(root, relative)
        if asset is not None:
            return asset

        if "." not in relative.name:
            return self._index_page(root, project_name)

        return None

    def _index_page(self, root: Path, project_name: str) -> ResolvedAsset | None:
        index = find_index_html(root)
        if index is None or not _within(root, index):
            return None
        html = index.read_text(encoding="utf-8", errors="replace")
        rewritten = rewrite_index_html(html, root, index.parent, project_name)
        return ResolvedAsset(
            content=rewritten.encode("utf-8"),
            media_type="text/html",
            source=index,
            rewritten=rewritten != html,
        )

    def _asset_dirs(self, root: Path) -> list[Path]:
        """Asset directories, the entry page's own first."""
        dirs: list[Path] = []
        index = find_index_html(root)
        if index is not None:
            own = find_asset_dir(index.parent)
            if own is not None:
                dirs.append(own)
        for layout_dir in CANDIDATE_LAYOUT:
            for name in ASSET_SUBDIRS:
                candidate = root / layout_dir / name
                if candidate.is_dir() and candidate not in dirs:
                    dirs.append(candidate)
        return dirs

    def _compiled_for_source(self, root: Path, path: str) -> ResolvedAsset | None:
        suffix = PurePosixPath(path).suffix
        if suffix in (".jsx", ".tsx"):
            for asset_dir in self._asset_dirs(root):
                bundle = pick_bundle(files_with_suffix(asset_dir, ".js"))
                if bundle is not None:
                    return _serve(root, bundle)
        elif suffix in (".css", ".svg"):
            for asset_dir in self._asset_dirs(root):
                matches = files_with_suffix(asset_dir, suffix)
                if matches:
                    return _serve(root, matches[0])
        return None

    def _direct(self, root: Path, relative: PurePosixPath) -> ResolvedAsset | None:
        for layout_dir in CANDIDATE_LAYOUT:
            candidate = root / layout_dir / relative
            if candidate.is_file():
                asset = _serve(root, candidate)
                if asset is not None:
                    return asset
        return None

    def _hashed(self, root: Path, relative: PurePosixPath) -> ResolvedAsset | None:
        prefix = relative.stem
        suffix = relative.suffix
        for layout_dir in CANDIDATE_LAYOUT:
            directory = root / layout_dir / relative.parent
            if not directory.is_dir() or not _within(root, directory):
                continue
            for candidate in sorted(directory.iterdir()):
                if (
                    candidate.is_file()
                    and candidate.name.startswith(prefix)
                    and candidate.name.endswith(suffix)
                ):
                    asset = _serve(root, candidate)
                    if asset is not None:
                        return asset
        for asset_dir in self._asset_dirs(root):
            for candidate in files_with_suffix(asset_dir, suffix):
                if candidate.name.startswith(prefix):
                    asset = _serve(root, candidate)
                    if asset is not None:
                        return asset
        return None

    def _generic_scan(self, root: Path, relative: PurePosixPath) -> ResolvedAsset | None:
        target = _GENERIC_TARGETS.get(relative.suffix)
        if target is None:
            return None
        for name in GENERIC_ASSET_DIRS:
            matches = files_with_suffix(root / name, target)
            if matches:
                return _serve(root, matches[0])
        return None


def _within(root: Path, path: Path) -> bool:
    try:
        path.resolve().relative_to(root)
    except (ValueError, OSError):
        return False
    return True


def _serve(root: Path, path: Path) -> ResolvedAsset | None:
    """Read ``path`` if it lies inside ``root``."""
    if not _within(root, path):
        logger.warning("resolver.outside_root", path=str(path))
        return None
    media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return ResolvedAsset(content=path.read_bytes(), media_type=media_type, source=path)
