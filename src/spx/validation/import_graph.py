"""Import graph construction and cycle detection.

Provides functions for:
- Mapping source files to dotted module names
- Building the module-level import graph of a source tree with ``ast``
- Finding import cycles (Tarjan's SCC algorithm)

Design decisions:
- Only imports executed at import time count: module level, class bodies and
  module-level control flow. Imports inside functions are deferred and cannot
  form an import-time cycle.
- Imports guarded by ``if TYPE_CHECKING:`` are skipped by default.
- An import points at the most specific module of the tree it names;
  imports of third-party modules are dropped.
"""

from __future__ import annotations

import ast
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

from spx.logging_config import get_logger
from spx.validation.paths import iter_python_files

logger = get_logger(__name__)


@dataclass
class ImportGraph:
    """Module-level import graph of a source tree.

    Attributes:
        modules: Module name to source file.
        packages: Names of modules that are packages (``__init__`` files).
        edges: Module name to the in-tree modules it imports.
        skipped: Files that could not be read or parsed.
    """

    modules: dict[str, Path] = field(default_factory=dict)
    packages: set[str] = field(default_factory=set)
    edges: dict[str, set[str]] = field(default_factory=dict)
    skipped: list[Path] = field(default_factory=list)


def module_name_for(path: Path, source_root: Path) -> str | None:
    """Get the dotted module name of a source file.

    Args:
        path: Source file under ``source_root``.
        source_root: Directory that is the import root (e.g. ``src``).

    Returns:
        Module name, or None if the path is outside the root or not a
        valid module path.
    """
    try:
        relative = path.relative_to(source_root)
    except ValueError:
        return None

    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts or not all(part.isidentifier() for part in parts):
        return None
    return ".".join(parts)


def _is_type_checking_guard(test: ast.expr) -> bool:
    if isinstance(test, ast.Name):
        return test.id == "TYPE_CHECKING"
    if isinstance(test, ast.Attribute):
        return test.attr == "TYPE_CHECKING"
    return False


class _ImportCollector(ast.NodeVisitor):
    """Collect import-time imports as (module, level, names) tuples."""

    def __init__(self, ignore_type_checking_imports: bool) -> None:
        self.ignore_type_checking_imports = ignore_type_checking_imports
        self.imports: list[tuple[str | None, int, list[str]]] = []

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.imports.append((alias.name, 0, []))

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self.imports.append((node.module, node.level, [alias.name for alias in node.names]))

    def visit_If(self, node: ast.If) -> None:
        if self.ignore_type_checking_imports and _is_type_checking_guard(node.test):
            for child in node.orelse:
                self.visit(child)
            return
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        return

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        return

    def visit_Lambda(self, node: ast.Lambda) -> None:
        return


def _longest_known_prefix(name: str, modules: dict[str, Path]) -> str | None:
    parts = name.split(".")
    while parts:
        candidate = ".".join(parts)
        if candidate in modules:
            return candidate
        parts.pop()
    return None


def _resolve_relative_base(module: str, is_package: bool, level: int) -> str | None:
    """Resolve the package a relative import starts from."""
    parts = module.split(".")
    if not is_package:
        parts = parts[:-1]
    drop = level - 1
    if drop > len(parts):
        return None
    if drop:
        parts = parts[:-drop]
    return ".".join(parts)


def _resolve_targets(
    importer: str,
    graph: ImportGraph,
    imported: str | None,
    level: int,
    names: list[str],
) -> set[str]:
    if level:
        base = _resolve_relative_base(importer, importer in graph.packages, level)
        if base is None:
            return set()
        absolute = ".".join(p for p in (base, imported) if p)
    else:
        absolute = imported or ""

    if not absolute:
        return set()

    targets: set[str] = set()
    if names:
        for name in names:
            submodule = f"{absolute}.{name}"
            if name != "*" and submodule in graph.modules:
                targets.add(submodule)
            else:
                found = _longest_known_prefix(absolute, graph.modules)
                if found:
                    targets.add(found)
    else:
        found = _longest_known_prefix(absolute, graph.modules)
        if found:
            targets.add(found)

    targets.discard(importer)
    return targets


def build_import_graph(
    source_root: Path,
    ignore_type_checking_imports: bool = True,
) -> ImportGraph:
    """Build the import graph of every module under ``source_root``.

    Args:
        source_root: Import root of the source tree.
        ignore_type_checking_imports: Skip ``if TYPE_CHECKING:`` imports.

    Returns:
        ImportGraph of the tree. Empty if the root does not exist.
    """
    graph = ImportGraph()
    if not source_root.is_dir():
        logger.warning("Source directory not found: %s", source_root)
        return graph

    for path in iter_python_files(source_root):
        name = module_name_for(path, source_root)
        if name is None:
            continue
        # A stub and its implementation share a name; keep the implementation
        if name in graph.modules and path.suffix == ".pyi":
            continue
        graph.modules[name] = path
        if path.stem == "__init__":
            graph.packages.add(name)

    for name, path in graph.modules.items():
        try:
            tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        except (OSError, SyntaxError, UnicodeDecodeError, ValueError) as e:
            logger.warning("Skipping %s: %s", path, e)
            graph.skipped.append(path)
            graph.edges[name] = set()
            continue

        collector = _ImportCollector(ignore_type_checking_imports)
        collector.visit(tree)

        targets: set[str] = set()
        for imported, level, names in collector.imports:
            targets |= _resolve_targets(name, graph, imported, level, names)
        graph.edges[name] = targets

    return graph


def find_strongly_connected(edges: dict[str, set[str]]) -> list[list[str]]:
    """Find strongly connected components that contain a cycle.

    Uses Tarjan's algorithm. Components with a single node are only reported
    for self-loops.

    Args:
        edges: Adjacency map.

    Returns:
        List of components, each sorted by name.
    """
    index_counter = [0]
    stack: list[str] = []
    lowlinks: dict[str, int] = {}
    index: dict[str, int] = {}
    on_stack: dict[str, bool] = {}
    sccs: list[list[str]] = []

    def strongconnect(node: str) -> None:
        index[node] = index_counter[0]
        lowlinks[node] = index_counter[0]
        index_counter[0] += 1
        stack.append(node)
        on_stack[node] = True

        for successor in sorted(edges.get(node, ())):
            if successor not in index:
                strongconnect(successor)
                lowlinks[node] = min(lowlinks[node], lowlinks[successor])
            elif on_stack.get(successor, False):
                lowlinks[node] = min(lowlinks[node], index[successor])

        # If node is a root node, pop the stack and generate an SCC
        if lowlinks[node] == index[node]:
            scc: list[str] = []
            while True:
                successor = stack.pop()
                on_stack[successor] = False
                scc.append(successor)
                if successor == node:
                    break
            if len(scc) > 1:
                sccs.append(sorted(scc))
            elif scc[0] in edges.get(scc[0], ()):
                sccs.append(scc)

    for node in sorted(edges):
        if node not in index:
            strongconnect(node)

    return sccs


def _shortest_cycle_through(start: str, members: set[str], edges: dict[str, set[str]]) -> list[str]:
    """Return the shortest closed walk from ``start`` back to itself inside ``members``."""
    if start in edges.get(start, ()):
        return [start, start]

    parents: dict[str, str] = {}
    queue: deque[str] = deque()
    for successor in sorted(edges.get(start, ()) & members):
        parents[successor] = start
        queue.append(successor)

    while queue:
        node = queue.popleft()
        for successor in sorted(edges.get(node, ()) & members):
            if successor == start:
                path = [node]
                while path[-1] != start:
                    path.append(parents[path[-1]])
                path.reverse()
                return [*path, start]
            if successor not in parents:
                parents[successor] = node
                queue.append(successor)

    return [start]


def find_cycles(graph: ImportGraph) -> list[list[str]]:
    """Find import cycles in the graph.

    Each cycle is an ordered sequence of module names that starts and ends
    with the same module, e.g. ``["pkg.a", "pkg.b", "pkg.a"]``. One cycle is
    reported per strongly connected component, starting at its smallest
    module name.

    Args:
        graph: The import graph.

    Returns:
        List of cycles, shortest first. Empty if the graph is acyclic.
    """
    cycles = [
        _shortest_cycle_through(component[0], set(component), graph.edges)
        for component in find_strongly_connected(graph.edges)
    ]
    return sorted(cycles, key=lambda c: (len(c), c))
