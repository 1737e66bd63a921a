"""Unit tests for project classification."""

from pathlib import Path

from conftest import write_tree
from deployer.core.classifier import classify, detect
from deployer.models.deployment import ProjectType


class TestDetect:
    """Tests for marker detection in a single directory."""

    def test_marker_priority(self, tmp_path: Path):
        write_tree(
            tmp_path,
            {
                "index.html": "",
                "requirements.txt": "",
                "go.mod": "",
                "package.json": "{}",
            },
        )

        assert detect(tmp_path) == ProjectType.NODE

    def test_go_before_python(self, tmp_path: Path):
        write_tree(tmp_path, {"requirements.txt": "", "go.mod": ""})

        assert detect(tmp_path) == ProjectType.GO

    def test_no_markers(self, tmp_path: Path):
        write_tree(tmp_path, {"README.md": "hello"})

        assert detect(tmp_path) is None


class TestClassify:
    """Tests for root and one-level-deep classification."""

    def test_root_markers_win_over_subdirs(self, tmp_path: Path):
        write_tree(tmp_path, {"index.html": "", "app/package.json": "{}"})

        assert classify(tmp_path) == (tmp_path, ProjectType.STATIC)

    def test_finds_project_in_subdirectory(self, tmp_path: Path):
        write_tree(tmp_path, {"README.md": "", "frontend/package.json": "{}"})

        assert classify(tmp_path) == (tmp_path / "frontend", ProjectType.NODE)

    def test_subdirectories_checked_in_name_order(self, tmp_path: Path):
        write_tree(
            tmp_path,
            {"web/package.json": "{}", "api/requirements.txt": ""},
        )

        assert classify(tmp_path) == (tmp_path / "api", ProjectType.PYTHON)

    def test_is_deterministic(self, tmp_path: Path):
        write_tree(
            tmp_path,
            {"b/go.mod": "", "a/index.html": "", "c/package.json": "{}"},
        )

        results = {classify(tmp_path) for _ in range(5)}
        assert results == {(tmp_path / "a", ProjectType.STATIC)}

    def test_never_looks_two_levels_deep(self, tmp_path: Path):
        write_tree(tmp_path, {"outer/inner/package.json": "{}"})

        assert classify(tmp_path) == (tmp_path, ProjectType.UNKNOWN)

    def test_skips_dependency_and_vcs_dirs(self, tmp_path: Path):
        write_tree(
            tmp_path,
            {
                "node_modules/package.json": "{}",
                ".git/index.html": "",
                "venv/requirements.txt": "",
            },
        )

        assert classify(tmp_path) == (tmp_path, ProjectType.UNKNOWN)

    def test_missing_directory_is_unknown(self, tmp_path: Path):
        missing = tmp_path / "missing"

        assert classify(missing) == (missing, ProjectType.UNKNOWN)
