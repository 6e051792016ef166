"""
Import-boundary enforcement.

1. Engine purity      — valuation_engines/** may not import DB drivers,
                         ORM, kernel models/db/selectors, services or config.
2. Dependency direction — valuation_kernel/** never imports upward.
3. Runtime check      — importing the engines does not load SQLAlchemy.

Source scanning is done via AST; these tests are read-only.
"""

import ast
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    """True if *module* equals or is a child of any prefix."""
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            if _matches_any(module, forbidden):
                found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestEnginePurity:
    """valuation_engines/** stays free of storage and outer layers."""

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "psycopg",
        "sqlite3",
        "valuation_kernel.models",
        "valuation_kernel.db",
        "valuation_kernel.selectors",
        "valuation_services",
        "valuation_config",
    )

    def test_engine_files_have_no_forbidden_imports(self):
        violations = _violations("valuation_engines", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Engine purity violation:\n" + "\n".join(violations)
        )

    def test_importing_engines_does_not_load_storage(self):
        """The account matcher and formula engine import without the ORM."""
        code = (
            "import sys\n"
            "import valuation_engines.accounts\n"
            "import valuation_engines\n"
            "loaded = [m for m in ('sqlalchemy', 'valuation_kernel.models.posting')"
            " if m in sys.modules]\n"
            "print(','.join(loaded))\n"
        )
        result = subprocess.run(
            [sys.executable, "-c", code],
            cwd=ROOT,
            capture_output=True,
            text=True,
            check=True,
        )
        assert result.stdout.strip() == ""


class TestKernelNoUpwardDependencies:
    """valuation_kernel/** must not import engines, config or services."""

    FORBIDDEN_PREFIXES = (
        "valuation_engines",
        "valuation_config",
        "valuation_services",
    )

    def test_kernel_does_not_import_outer_layers(self):
        violations = _violations("valuation_kernel", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Kernel boundary violation:\n" + "\n".join(violations)
        )
