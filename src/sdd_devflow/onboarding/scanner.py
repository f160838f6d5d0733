"""Project scanner: guess the stack and layout of an existing JS/TS project.

The scanner reads ``package.json``, env files, a Prisma schema and the
directory tree.  It never writes and never raises for a normal project tree:
unreadable or malformed inputs degrade to "not detected".
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)

# Directories never descended into (hidden directories are skipped too).
_SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        ".next",
        ".nuxt",
        "coverage",
        ".turbo",
    }
)

# Conventional source roots, in priority order.
_SRC_ROOTS = ("src", "app", "server", "lib")

_ENV_FILES = (".env", ".env.local", ".env.example", ".env.sample")

_MONOREPO_MARKERS = ("lerna.json", "turbo.json", "pnpm-workspace.yaml", "nx.json")

_PRISMA_SCHEMAS = (
    "prisma/schema.prisma",
    "src/prisma/schema.prisma",
    "backend/prisma/schema.prisma",
)

_OPENAPI_CANDIDATES = (
    "swagger.json",
    "swagger.yaml",
    "swagger.yml",
    "openapi.json",
    "openapi.yaml",
    "openapi.yml",
    "api-spec.yaml",
    "api-spec.yml",
    "api-spec.json",
    "docs/swagger.json",
    "docs/swagger.yaml",
    "docs/openapi.json",
    "docs/openapi.yaml",
    "docs/api-spec.yaml",
)

_TEST_CONFIG_FILES = (
    "jest.config.js",
    "jest.config.ts",
    "jest.config.mjs",
    "jest.config.cjs",
    "vitest.config.js",
    "vitest.config.ts",
    "vitest.config.mjs",
    ".mocharc.yml",
    ".mocharc.json",
    ".mocharc.js",
    "playwright.config.ts",
    "playwright.config.js",
    "cypress.config.ts",
    "cypress.config.js",
)

_TEST_DIR_NAMES = frozenset({"__tests__", "tests", "test"})

_TEST_FILE_RE = re.compile(r"\.(test|spec)\.(ts|tsx|js|jsx|mjs)$")
_SOURCE_FILE_RE = re.compile(r"\.(ts|tsx|js|jsx|mjs)$")
_NON_SOURCE_RE = re.compile(r"\.(config|setup|d)\.")

_DATASOURCE_RE = re.compile(r"datasource\s+\w+\s*\{[^}]*\}")
_PROVIDER_RE = re.compile(r'provider\s*=\s*"(\w+)"')
_DATABASE_URL_RE = re.compile(r"DATABASE_URL\s*=\s*(\S+)")
_MONGO_URI_RE = re.compile(r"^MONGO(?:DB)?_URI\s*=", re.MULTILINE)
_REDIS_URL_RE = re.compile(r"^REDIS_URL\s*=", re.MULTILINE)
_ENV_PORT_RE = re.compile(r"""^PORT\s*=\s*["']?(\d+)""", re.MULTILINE)
_SCRIPT_PORT_RE = re.compile(r"--port\s+(\d+)|PORT=(\d+)|-p\s+(\d+)")
_GIT_HEAD_RE = re.compile(r"ref: refs/heads/(.+)")

_PRISMA_PROVIDERS = {
    "postgresql": "PostgreSQL",
    "postgres": "PostgreSQL",
    "mysql": "MySQL",
    "sqlite": "SQLite",
    "sqlserver": "SQL Server",
    "mongodb": "MongoDB",
    "cockroachdb": "CockroachDB",
}

_MAX_ARCH_DEPTH = 2
_MAX_COUNT_DEPTH = 6

# ---------------------------------------------------------------------------
# Detection rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DetectionRule:
    """Maps a dependency predicate to a human-readable label."""

    matches: Callable[[Mapping[str, Any]], bool]
    label: str


def _has(*names: str) -> Callable[[Mapping[str, Any]], bool]:
    """Predicate: any of *names* is a declared dependency."""

    def predicate(deps: Mapping[str, Any]) -> bool:
        return any(deps.get(name) for name in names)

    return predicate


def _has_prefix(scope: str) -> Callable[[Mapping[str, Any]], bool]:
    """Predicate: any dependency is namespaced under *scope*."""

    def predicate(deps: Mapping[str, Any]) -> bool:
        return any(name.startswith(scope) for name in deps)

    return predicate


def first_match(rules: Iterable[DetectionRule], deps: Mapping[str, Any]) -> str | None:
    """Return the label of the first rule matching *deps*.

    Rules are evaluated in order, so more specific rules must come first.
    """
    for rule in rules:
        if rule.matches(deps):
            return rule.label
    return None


BACKEND_FRAMEWORKS: tuple[DetectionRule, ...] = (
    DetectionRule(_has("express"), "Express"),
    DetectionRule(_has("fastify"), "Fastify"),
    DetectionRule(_has("koa"), "Koa"),
    DetectionRule(_has("@nestjs/core"), "NestJS"),
    DetectionRule(_has("@hapi/hapi"), "Hapi"),
    DetectionRule(_has("@adonisjs/core"), "AdonisJS"),
)

ORMS: tuple[DetectionRule, ...] = (
    DetectionRule(_has("@prisma/client"), "Prisma"),
    DetectionRule(_has("mongoose"), "Mongoose"),
    DetectionRule(_has("typeorm"), "TypeORM"),
    DetectionRule(_has("sequelize"), "Sequelize"),
    DetectionRule(_has("drizzle-orm"), "Drizzle"),
    DetectionRule(_has("knex"), "Knex"),
    DetectionRule(_has("@mikro-orm/core"), "MikroORM"),
    DetectionRule(_has("objection"), "Objection.js"),
)

# Meta-frameworks before the libraries they are built on.
FRONTEND_FRAMEWORKS: tuple[DetectionRule, ...] = (
    DetectionRule(_has("next"), "Next.js"),
    DetectionRule(_has("nuxt"), "Nuxt"),
    DetectionRule(_has("@remix-run/react"), "Remix"),
    DetectionRule(_has("astro"), "Astro"),
    DetectionRule(_has("solid-js"), "SolidJS"),
    DetectionRule(_has("react"), "React"),
    DetectionRule(_has("vue"), "Vue"),
    DetectionRule(_has("@angular/core"), "Angular"),
    DetectionRule(_has("svelte"), "Svelte"),
)

STYLING: tuple[DetectionRule, ...] = (
    DetectionRule(_has("tailwindcss"), "Tailwind CSS"),
    DetectionRule(_has("styled-components"), "styled-components"),
    DetectionRule(_has("@emotion/react", "@emotion/styled"), "Emotion"),
    DetectionRule(_has("sass", "node-sass"), "Sass"),
)

COMPONENT_LIBRARIES: tuple[DetectionRule, ...] = (
    DetectionRule(_has_prefix("@radix-ui/"), "Radix UI"),
    DetectionRule(_has("@headlessui/react"), "Headless UI"),
    DetectionRule(_has("@mui/material"), "Material UI"),
    DetectionRule(_has("@chakra-ui/react"), "Chakra UI"),
    DetectionRule(_has("antd"), "Ant Design"),
)

STATE_LIBRARIES: tuple[DetectionRule, ...] = (
    DetectionRule(_has("zustand"), "Zustand"),
    DetectionRule(_has("@reduxjs/toolkit", "redux"), "Redux"),
    DetectionRule(_has("jotai"), "Jotai"),
    DetectionRule(_has("@tanstack/react-query"), "TanStack Query"),
    DetectionRule(_has("recoil"), "Recoil"),
    DetectionRule(_has("pinia"), "Pinia"),
    DetectionRule(_has("mobx"), "MobX"),
)

UNIT_TEST_FRAMEWORKS: tuple[DetectionRule, ...] = (
    DetectionRule(_has("jest", "@jest/core", "ts-jest", "@types/jest"), "jest"),
    DetectionRule(_has("vitest"), "vitest"),
    DetectionRule(_has("mocha"), "mocha"),
)

E2E_FRAMEWORKS: tuple[DetectionRule, ...] = (
    DetectionRule(_has("@playwright/test", "playwright"), "playwright"),
    DetectionRule(_has("cypress"), "cypress"),
)

# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackendInfo:
    detected: bool = False
    framework: str | None = None
    orm: str | None = None
    db: str | None = None
    port: int | None = None


@dataclass(frozen=True)
class FrontendInfo:
    detected: bool = False
    framework: str | None = None
    styling: str | None = None
    components: str | None = None
    state: str | None = None


@dataclass(frozen=True)
class SrcStructure:
    """Directories under the source root and their architecture pattern.

    ``pattern`` is one of ``ddd``, ``layered``, ``mvc``, ``feature-based``,
    ``handler-based``, ``flat`` or ``unknown``.
    """

    dirs: tuple[str, ...] = ()
    pattern: str = "unknown"

    @property
    def top_level(self) -> tuple[str, ...]:
        return tuple(d for d in self.dirs if "/" not in d)


@dataclass(frozen=True)
class TestInfo:
    """Unit / E2E frameworks and the file-count coverage heuristic."""

    __test__ = False  # not a pytest class

    framework: str = "none"
    e2e_framework: str | None = None
    has_config: bool = False
    test_files: int = 0
    test_dirs: tuple[str, ...] = ()
    estimated_coverage: str = "none"


@dataclass(frozen=True)
class ExistingDocs:
    has_openapi: bool = False
    openapi_path: str | None = None
    has_prisma_schema: bool = False
    prisma_schema_path: str | None = None
    has_readme: bool = False
    has_env_example: bool = False


@dataclass(frozen=True)
class ScanResult:
    """Read-only snapshot of a project directory at scan time."""

    project_name: str
    description: str = ""
    language: str = "javascript"
    backend: BackendInfo = field(default_factory=BackendInfo)
    frontend: FrontendInfo = field(default_factory=FrontendInfo)
    is_monorepo: bool = False
    root_dirs: tuple[str, ...] = ()
    src_structure: SrcStructure = field(default_factory=SrcStructure)
    tests: TestInfo = field(default_factory=TestInfo)
    existing_docs: ExistingDocs = field(default_factory=ExistingDocs)
    git_branch: str = "main"
    has_git: bool = False

    @property
    def src_root_name(self) -> str | None:
        """Conventional source root among the top-level dirs, if any."""
        for name in _SRC_ROOTS:
            if name in self.root_dirs:
                return name
        return None

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view with camelCase keys."""
        return _camelize(asdict(self))


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join("OpenAPI" if part == "openapi" else part.title() for part in rest)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_camelize(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def _safe_read(path: Path) -> str | None:
    """Read file text, returning ``None`` when missing or unreadable."""
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None


def _read_json(path: Path) -> dict[str, Any]:
    """Read and parse a JSON object, returning empty dict on failure."""
    content = _safe_read(path)
    if content is None:
        return {}
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, ValueError) as exc:
        logger.debug("Invalid JSON in %s: %s", path, exc)
        return {}
    if isinstance(data, dict):
        return data
    return {}


def _collect_deps(pkg: Mapping[str, Any]) -> dict[str, Any]:
    deps: dict[str, Any] = {}
    for key in ("dependencies", "devDependencies"):
        section = pkg.get(key)
        if isinstance(section, dict):
            deps.update(section)
    return deps


def _is_skipped(name: str) -> bool:
    return name in _SKIP_DIRS or name.startswith(".")


def _list_dir(path: Path) -> list[Path]:
    """Sorted directory entries; empty on any read error."""
    try:
        return sorted(path.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        logger.debug("Cannot list %s: %s", path, exc)
        return []


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


def _detect_database_from_prisma(project_dir: Path) -> str | None:
    """Return the database named by the Prisma ``datasource`` block.

    Only the datasource block is inspected so that a ``generator`` block's
    provider (e.g. ``prisma-client-js``) is never mistaken for a database.
    """
    for candidate in _PRISMA_SCHEMAS:
        content = _safe_read(project_dir / candidate)
        if content is None:
            continue
        block = _DATASOURCE_RE.search(content)
        source = block.group(0) if block else content
        match = _PROVIDER_RE.search(source)
        if match:
            provider = match.group(1)
            return _PRISMA_PROVIDERS.get(provider, provider)
    return None


def _database_from_url(url: str) -> str | None:
    if url.startswith(("postgresql://", "postgres://")):
        return "PostgreSQL"
    if url.startswith(("mongodb://", "mongodb+srv://")):
        return "MongoDB"
    if url.startswith("mysql://"):
        return "MySQL"
    if "sqlite" in url:
        return "SQLite"
    return None


def _detect_database_from_env(project_dir: Path) -> str | None:
    for env_file in _ENV_FILES:
        content = _safe_read(project_dir / env_file)
        if content is None:
            continue
        match = _DATABASE_URL_RE.search(content)
        if match:
            db = _database_from_url(match.group(1).replace('"', "").replace("'", ""))
            if db:
                return db
        if _MONGO_URI_RE.search(content):
            return "MongoDB"
        if _REDIS_URL_RE.search(content):
            return "Redis"
    return None


def _detect_port(project_dir: Path, pkg: Mapping[str, Any]) -> int | None:
    for env_file in _ENV_FILES:
        content = _safe_read(project_dir / env_file)
        if content is None:
            continue
        match = _ENV_PORT_RE.search(content)
        if match:
            return int(match.group(1))

    scripts = pkg.get("scripts")
    if isinstance(scripts, dict):
        joined = " ".join(str(v) for v in scripts.values())
        match = _SCRIPT_PORT_RE.search(joined)
        if match:
            return int(next(g for g in match.groups() if g))
    return None


def detect_backend(project_dir: Path, pkg: Mapping[str, Any]) -> BackendInfo:
    """Detect backend framework, ORM, database and port."""
    deps = _collect_deps(pkg)
    framework = first_match(BACKEND_FRAMEWORKS, deps)
    orm = first_match(ORMS, deps)

    db: str | None = None
    if orm == "Prisma":
        db = _detect_database_from_prisma(project_dir)
    elif orm == "Mongoose":
        db = "MongoDB"
    if db is None:
        db = _detect_database_from_env(project_dir)

    # An ORM or database without a known framework still means a backend.
    detected = framework is not None or orm is not None or db is not None
    return BackendInfo(
        detected=detected,
        framework=framework,
        orm=orm,
        db=db,
        port=_detect_port(project_dir, pkg),
    )


# ---------------------------------------------------------------------------
# Frontend
# ---------------------------------------------------------------------------


def detect_frontend(pkg: Mapping[str, Any]) -> FrontendInfo:
    """Detect frontend framework, styling, component and state libraries."""
    deps = _collect_deps(pkg)
    framework = first_match(FRONTEND_FRAMEWORKS, deps)
    return FrontendInfo(
        detected=framework is not None,
        framework=framework,
        styling=first_match(STYLING, deps),
        components=first_match(COMPONENT_LIBRARIES, deps),
        state=first_match(STATE_LIBRARIES, deps),
    )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


def detect_monorepo(project_dir: Path, pkg: Mapping[str, Any]) -> bool:
    if pkg.get("workspaces"):
        return True
    return any((project_dir / marker).exists() for marker in _MONOREPO_MARKERS)


def list_root_dirs(project_dir: Path) -> tuple[str, ...]:
    """Top-level directory names, excluding build/vcs/dependency dirs."""
    return tuple(
        p.name for p in _list_dir(project_dir) if p.is_dir() and not _is_skipped(p.name)
    )


def find_src_root(project_dir: Path) -> Path:
    """Return the first conventional source root, or the project root."""
    for name in _SRC_ROOTS:
        candidate = project_dir / name
        if candidate.is_dir():
            return candidate
    return project_dir


def _list_dirs_recursive(base: Path, max_depth: int, prefix: str = "") -> list[str]:
    if max_depth <= 0:
        return []
    result: list[str] = []
    for entry in _list_dir(base):
        if not entry.is_dir() or _is_skipped(entry.name):
            continue
        rel = f"{prefix}{entry.name}"
        result.append(rel)
        result.extend(_list_dirs_recursive(entry, max_depth - 1, f"{rel}/"))
    return result


def classify_pattern(dirs: Iterable[str]) -> str:
    """Classify a directory listing into an architecture pattern.

    The cascade tests structured patterns before looser ones:
    ddd > layered > mvc > feature-based > handler-based > flat > unknown.
    """
    dir_list = list(dirs)
    names = {d.rsplit("/", 1)[-1] for d in dir_list}

    has_controllers = bool(names & {"controllers", "controller"})
    has_routes = bool(names & {"routes", "router"})
    has_models = bool(names & {"models", "model"})
    has_domain = "domain" in names
    has_features = bool(names & {"features", "modules"})
    has_handlers = bool(names & {"handlers", "handler"})
    has_managers = bool(names & {"managers", "manager"})

    if has_domain and names & {"application", "infrastructure"}:
        return "ddd"
    if has_handlers and has_controllers and has_managers:
        return "layered"
    if has_controllers and has_models:
        return "mvc"
    if has_features:
        return "feature-based"
    if has_handlers and has_routes:
        return "handler-based"
    if len(dir_list) <= 3:
        return "flat"
    return "unknown"


def detect_architecture(project_dir: Path) -> SrcStructure:
    dirs = _list_dirs_recursive(find_src_root(project_dir), _MAX_ARCH_DEPTH)
    return SrcStructure(dirs=tuple(sorted(dirs)), pattern=classify_pattern(dirs))


def _has_typed_sources(base: Path, max_depth: int = _MAX_COUNT_DEPTH) -> bool:
    if max_depth <= 0:
        return False
    for entry in _list_dir(base):
        if entry.is_dir():
            if not _is_skipped(entry.name) and _has_typed_sources(entry, max_depth - 1):
                return True
        elif entry.suffix in (".ts", ".tsx") and not entry.name.endswith(".d.ts"):
            return True
    return False


def detect_language(project_dir: Path) -> str:
    if (project_dir / "tsconfig.json").exists():
        return "typescript"
    if _has_typed_sources(find_src_root(project_dir)):
        return "typescript"
    return "javascript"


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


@dataclass
class _FileCounts:
    test_files: int = 0
    source_files: int = 0
    test_dirs: list[str] = field(default_factory=list)


def _count_files(base: Path, counts: _FileCounts, depth: int = 0) -> None:
    if depth >= _MAX_COUNT_DEPTH:
        return
    for entry in _list_dir(base):
        name = entry.name
        if entry.is_dir():
            if _is_skipped(name):
                continue
            if name in _TEST_DIR_NAMES and name not in counts.test_dirs:
                counts.test_dirs.append(name)
            _count_files(entry, counts, depth + 1)
        elif entry.is_file():
            if _TEST_FILE_RE.search(name):
                counts.test_files += 1
            elif _SOURCE_FILE_RE.search(name) and not _NON_SOURCE_RE.search(name):
                counts.source_files += 1


def estimate_coverage(test_files: int, source_files: int) -> str:
    """Map the test/source file ratio to none / low / medium / high."""
    if test_files == 0:
        return "none"
    if source_files == 0:
        return "low"
    ratio = test_files / source_files
    if ratio >= 0.5:
        return "high"
    if ratio >= 0.2:
        return "medium"
    return "low"


def detect_tests(project_dir: Path, pkg: Mapping[str, Any]) -> TestInfo:
    deps = _collect_deps(pkg)
    counts = _FileCounts()
    _count_files(project_dir, counts)
    return TestInfo(
        framework=first_match(UNIT_TEST_FRAMEWORKS, deps) or "none",
        e2e_framework=first_match(E2E_FRAMEWORKS, deps),
        has_config=any((project_dir / f).exists() for f in _TEST_CONFIG_FILES),
        test_files=counts.test_files,
        test_dirs=tuple(counts.test_dirs),
        estimated_coverage=estimate_coverage(counts.test_files, counts.source_files),
    )


# ---------------------------------------------------------------------------
# Docs and git
# ---------------------------------------------------------------------------


def _first_existing(project_dir: Path, candidates: Iterable[str]) -> str | None:
    for candidate in candidates:
        if (project_dir / candidate).is_file():
            return candidate
    return None


def detect_existing_docs(project_dir: Path) -> ExistingDocs:
    openapi = _first_existing(project_dir, _OPENAPI_CANDIDATES)
    prisma = _first_existing(project_dir, _PRISMA_SCHEMAS)
    return ExistingDocs(
        has_openapi=openapi is not None,
        openapi_path=openapi,
        has_prisma_schema=prisma is not None,
        prisma_schema_path=prisma,
        has_readme=(project_dir / "README.md").exists(),
        has_env_example=(
            (project_dir / ".env.example").exists() or (project_dir / ".env.sample").exists()
        ),
    )


def detect_git_branch(project_dir: Path) -> str:
    content = _safe_read(project_dir / ".git" / "HEAD")
    if content:
        match = _GIT_HEAD_RE.search(content.strip())
        if match:
            return match.group(1)
    return "main"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def scan_project(project_dir: Path) -> ScanResult:
    """Scan *project_dir* and return what could be detected.

    Pure function of the on-disk state: scanning an unchanged tree twice
    yields equal results.
    """
    project_dir = Path(project_dir)
    pkg = _read_json(project_dir / "package.json")

    name = pkg.get("name")
    description = pkg.get("description")

    return ScanResult(
        project_name=name if isinstance(name, str) and name else project_dir.resolve().name,
        description=description if isinstance(description, str) else "",
        language=detect_language(project_dir),
        backend=detect_backend(project_dir, pkg),
        frontend=detect_frontend(pkg),
        is_monorepo=detect_monorepo(project_dir, pkg),
        root_dirs=list_root_dirs(project_dir),
        src_structure=detect_architecture(project_dir),
        tests=detect_tests(project_dir, pkg),
        existing_docs=detect_existing_docs(project_dir),
        git_branch=detect_git_branch(project_dir),
        has_git=(project_dir / ".git").exists(),
    )
