"""Retrofit adaptation: rewrite template regions from a ``ScanResult``.

Every function here edits a ``Document`` in place.  Lines for facts the scan
could not establish are omitted rather than filled with "Unknown".
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from sdd_devflow.materialize.generator import api_base_url, autonomy_values, sprint_range
from sdd_devflow.onboarding.presets import DEFAULT_DATABASE_URL, database_info

if TYPE_CHECKING:
    from datetime import date

    from sdd_devflow.materialize.templating import Document
    from sdd_devflow.onboarding.config import Config
    from sdd_devflow.onboarding.scanner import ScanResult

PATTERN_LABELS = {
    "mvc": "MVC",
    "layered": "Layered",
    "ddd": "DDD Layered",
    "feature-based": "Feature-Based",
    "handler-based": "Handler-Based",
    "flat": "Flat",
    "unknown": "Custom",
}

# Shorter labels used in the AGENTS.md standards summary.
PATTERN_SHORT_LABELS = {
    "mvc": "MVC",
    "layered": "Layered",
    "ddd": "DDD",
    "feature-based": "Feature-Based",
    "handler-based": "Handler-Based",
    "flat": "Flat",
}

TEST_FRAMEWORK_LABELS = {
    "jest": "Jest",
    "vitest": "Vitest",
    "mocha": "Mocha",
    "playwright": "Playwright",
    "cypress": "Cypress",
}

REVIEW_NOTE = (
    "<!-- TODO: Review and adjust the sections below to match your project's conventions. -->\n"
    "<!-- This file was generated from project analysis by create-sdd-project --init. -->\n"
)

# Root directories never shown in generated structure trees.
_TREE_EXCLUDED = frozenset({"docs", "ai-specs", "node_modules"})

_HINT_DB_HOSTING = "[e.g., Neon, Supabase, RDS]"


def testing_label(scan: ScanResult) -> str:
    if scan.tests.framework == "none":
        return "Not configured"
    return TEST_FRAMEWORK_LABELS.get(scan.tests.framework, scan.tests.framework)


def _language_label(scan: ScanResult) -> str:
    return "TypeScript" if scan.language == "typescript" else "JavaScript"


def _tree(root: str, entries: list[str]) -> str:
    lines = [f"{root}/"]
    for index, entry in enumerate(entries):
        branch = "└── " if index == len(entries) - 1 else "├── "
        lines.append(f"{branch}{entry}")
    return "\n".join(lines) + "\n"


def build_architecture_tree(scan: ScanResult) -> str:
    """Depth-1 tree of the source root, or a placeholder when it is empty."""
    root = scan.src_root_name or "project"
    top_level = scan.src_structure.top_level
    if not top_level:
        return _tree(root, ["<!-- TODO: Map your project structure here -->"])
    return _tree(root, [f"{d}/" for d in top_level])


# ---------------------------------------------------------------------------
# Standards
# ---------------------------------------------------------------------------


def adapt_backend_standards(document: Document, scan: ScanResult) -> None:
    """Rewrite backend standards for the detected stack."""
    src_root = scan.src_root_name
    glob = f"{src_root}/**/*.{{ts,js,tsx,jsx}}" if src_root else "**/*.{ts,js,tsx,jsx}"
    document.replace(
        "frontmatter",
        "description: Backend development standards, best practices, and conventions.\n"
        f'globs: ["{glob}"]\n',
    )
    document.replace("config-note", REVIEW_NOTE)

    backend = scan.backend
    stack = [f"- **Runtime**: Node.js with {_language_label(scan)}"]
    if backend.framework:
        stack.append(f"- **Framework**: {backend.framework}")
    if backend.orm:
        suffix = f" ({backend.db})" if backend.db else ""
        stack.append(f"- **ORM**: {backend.orm}{suffix}")
    elif backend.db:
        stack.append(f"- **Database**: {backend.db}")
    stack.append(f"- **Testing**: {testing_label(scan)}")
    document.replace("tech-stack", "\n".join(stack))

    label = PATTERN_LABELS.get(scan.src_structure.pattern, "Custom")
    document.replace(
        "architecture",
        f"## Architecture: {label}\n\n"
        f"```\n{build_architecture_tree(scan)}```\n\n"
        "<!-- TODO: Add layer rules that match your project's architecture. -->\n",
    )

    if backend.orm is None:
        document.replace(
            "database-patterns",
            "<!-- TODO: Add database access patterns for your project. -->",
        )
    elif backend.orm != "Prisma":
        document.replace(
            "database-patterns",
            f"<!-- TODO: Add {backend.orm} best practices and patterns for your project. -->",
        )

    if backend.orm != "Prisma":
        document.replace(
            "orm-security", "- Use parameterized queries to prevent injection attacks"
        )
        document.replace(
            "orm-performance", "- Avoid N+1 queries; use eager loading or batch fetching"
        )


def adapt_frontend_standards(document: Document, scan: ScanResult) -> None:
    """Rewrite frontend standards for the detected stack."""
    document.replace(
        "frontmatter",
        "description: Frontend development standards, best practices, and conventions.\n"
        'globs: ["**/*.{ts,tsx,js,jsx}", "!node_modules/**"]\n',
    )
    document.replace("config-note", REVIEW_NOTE)

    frontend = scan.frontend
    stack = []
    if frontend.framework:
        stack.append(f"- **Framework**: {frontend.framework}")
    stack.append(f"- **Language**: {_language_label(scan)}")
    stack.append(f"- **Styling**: {frontend.styling or 'CSS'}")
    if frontend.components:
        stack.append(f"- **Components**: {frontend.components}")
    if frontend.state:
        stack.append(f"- **State Management**: {frontend.state}")
    stack.append(f"- **Testing**: {testing_label(scan)}")
    document.replace("tech-stack", "\n".join(stack))

    dirs = [f"{d}/" for d in scan.root_dirs if d not in _TREE_EXCLUDED]
    document.replace(
        "project-structure",
        f"```\n{_tree('project', dirs)}```\n\n"
        "<!-- TODO: Expand the structure above with your key subdirectories. -->",
    )


# ---------------------------------------------------------------------------
# AGENTS.md, key facts, tracker
# ---------------------------------------------------------------------------


def adapt_agents_md(document: Document, scan: ScanResult) -> None:
    """Rebuild the structure tree from the real root directories.

    The per-workspace install block only applies to monorepos.
    """
    entries = [f"{d}/" for d in scan.root_dirs if d not in _TREE_EXCLUDED]
    lines = ["project/"]
    lines.extend(f"├── {entry}" for entry in entries)
    lines.append("└── docs/        ← Documentation")
    document.replace("project-structure", "```\n" + "\n".join(lines) + "\n```")
    if scan.is_monorepo:
        document.keep("install-per-workspace")
    else:
        document.drop("install-per-workspace")


def key_facts_sides(config: Config) -> dict[str, bool]:
    """Sides whose key facts are kept: in the project type and found by the scan."""
    scan = config.scan_result
    backend = scan is not None and scan.backend.detected
    frontend = scan is not None and scan.frontend.detected
    return {
        "backend": config.has_backend and backend,
        "frontend": config.has_frontend and frontend,
    }


def configure_key_facts(document: Document, config: Config) -> None:
    if not config.business_context.strip():
        document.drop("project-information")
    if schema_path(config) is None:
        document.drop("data-model")


def configure_sprint_tracker(document: Document, scan: ScanResult) -> None:
    """Add retrofit testing tasks when coverage is missing or low."""
    if scan.tests.estimated_coverage in ("none", "low"):
        document.keep("retrofit-testing")
    else:
        document.drop("retrofit-testing")


# ---------------------------------------------------------------------------
# Token values
# ---------------------------------------------------------------------------


def schema_path(config: Config) -> str | None:
    """Where key facts should point for the data model.

    ``None`` when no data model was given or its source file is missing.
    """
    if config.data_model_path is None:
        return None
    if not (config.project_dir / config.data_model_path).is_file():
        return None
    if config.data_model_format == "other":
        return f"docs/specs/{PurePosixPath(config.data_model_path).name}"
    return config.data_model_path


def _backend_values(scan: ScanResult) -> dict[str, object | None]:
    backend = scan.backend
    info = database_info(backend.db)
    env_var = info.env_var if info else "DATABASE_URL"
    database_url = info.example_url if info and info.example_url else DEFAULT_DATABASE_URL
    if not backend.detected:
        return {
            "backend_stack": None,
            "database": None,
            "orm": None,
            "db_port": None,
            "database_hosting": None,
            "database_env_var": env_var,
            "database_url": database_url,
            "backend_patterns": "your backend stack",
        }

    runtime = "Node.js (TypeScript)" if scan.language == "typescript" else "Node.js"
    patterns = [
        PATTERN_SHORT_LABELS.get(scan.src_structure.pattern),
        backend.framework,
        backend.orm,
    ]
    return {
        "backend_stack": f"{backend.framework}, {runtime}" if backend.framework else runtime,
        "database": backend.db,
        "orm": backend.orm,
        "db_port": info.port if info else None,
        "database_hosting": info.hosting_examples if info else _HINT_DB_HOSTING,
        "database_env_var": env_var,
        "database_url": database_url,
        "backend_patterns": ", ".join(p for p in patterns if p) or "your backend stack",
    }


def _frontend_values(scan: ScanResult) -> dict[str, object | None]:
    frontend = scan.frontend
    if not frontend.detected:
        return {"frontend_stack": None, "frontend_patterns": "your frontend stack"}
    parts = (frontend.framework, frontend.styling, frontend.components, frontend.state)
    summary = (frontend.framework, frontend.styling, frontend.components)
    return {
        "frontend_stack": ", ".join(p for p in parts if p),
        "frontend_patterns": ", ".join(p for p in summary if p),
    }


def build_retrofit_values(config: Config, today: date | None = None) -> dict[str, object | None]:
    """Token mapping for a retrofit, filled from the scan where possible."""
    scan = config.scan_result
    if scan is None:
        msg = "Retrofit values require a scan result"
        raise ValueError(msg)
    start, end = sprint_range(today)
    values: dict[str, object | None] = {
        "project_name": config.project_name,
        "description": config.description or None,
        "business_context": config.business_context.strip(),
        "branching": config.branching,
        "backend_port": config.backend_port,
        "frontend_port": config.frontend_port,
        "api_base_url": api_base_url(config.backend_port),
        "schema_path": schema_path(config),
        "sprint_start": start,
        "sprint_end": end,
    }
    values.update(autonomy_values(config))
    values.update(_backend_values(scan))
    values.update(_frontend_values(scan))
    return values
