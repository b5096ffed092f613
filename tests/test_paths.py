"""Tests for spx.validation.paths module."""

from __future__ import annotations

from pathlib import Path

import pytest

from spx.validation.paths import (
    PathNotFoundError,
    expand_file_paths,
    is_python_file,
    iter_python_files,
)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    for relative in [
        "src/app/__init__.py",
        "src/app/core.py",
        "src/app/types.pyi",
        "src/app/README.md",
        "src/app/__pycache__/core.cpython-312.py",
        "src/.hidden/secret.py",
        ".venv/lib/site.py",
    ]:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
    return tmp_path


class TestIsPythonFile:
    @pytest.mark.parametrize("name", ["a.py", "b.pyi"])
    def test_python(self, name: str) -> None:
        assert is_python_file(Path(name))

    @pytest.mark.parametrize("name", ["a.ts", "README.md", "py"])
    def test_not_python(self, name: str) -> None:
        assert not is_python_file(Path(name))


class TestIterPythonFiles:
    def test_skips_ignored_and_hidden_directories(self, tree: Path) -> None:
        found = [p.relative_to(tree).as_posix() for p in iter_python_files(tree)]
        assert found == ["src/app/__init__.py", "src/app/core.py", "src/app/types.pyi"]


class TestExpandFilePaths:
    """Tests for expand_file_paths."""

    def test_expands_directories(self, tree: Path) -> None:
        files = expand_file_paths([Path("src")], base_path=tree)
        assert files == [
            (tree / "src/app/__init__.py").resolve(),
            (tree / "src/app/core.py").resolve(),
            (tree / "src/app/types.pyi").resolve(),
        ]

    def test_keeps_order_and_drops_duplicates(self, tree: Path) -> None:
        files = expand_file_paths(
            [Path("src/app/core.py"), Path("src/app"), tree / "src/app/core.py"],
            base_path=tree,
        )
        assert files[0] == (tree / "src/app/core.py").resolve()
        assert len(files) == 3

    def test_skips_non_python_files(self, tree: Path) -> None:
        assert expand_file_paths([Path("src/app/README.md")], base_path=tree) == []

    def test_missing_paths_raise(self, tree: Path) -> None:
        with pytest.raises(PathNotFoundError) as exc_info:
            expand_file_paths([Path("src/app/core.py"), Path("nope.py"), Path("gone")], base_path=tree)
        assert exc_info.value.paths == [Path("nope.py"), Path("gone")]
        assert "nope.py" in str(exc_info.value)

    def test_is_a_file_not_found_error(self) -> None:
        assert issubclass(PathNotFoundError, FileNotFoundError)
