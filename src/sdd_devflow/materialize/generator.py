"""Template materializer for new projects."""

from __future__ import annotations

import logging
import shutil
from datetime import date, timedelta
from typing import TYPE_CHECKING

from sdd_devflow.materialize.files import MaterializeResult, get_template_dir, remove_path
from sdd_devflow.materialize.templating import Document
from sdd_devflow.onboarding.presets import (
    BACKEND_AGENTS,
    DEFAULT_DATABASE_URL,
    FRONTEND_AGENTS,
    database_info,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from sdd_devflow.onboarding.config import Config

logger = logging.getLogger(__name__)

# Documents containing tokens or regions; everything else is copied verbatim.
AGENTS_MD = "AGENTS.md"
CLAUDE_MD = "CLAUDE.md"
GEMINI_MD = "GEMINI.md"
ENV_EXAMPLE = ".env.example"
KEY_FACTS = "docs/project_notes/key_facts.md"
SPRINT_TRACKER = "docs/project_notes/sprint-0-tracker.md"
API_SPEC = "docs/specs/api-spec.yaml"
UI_COMPONENTS = "docs/specs/ui-components.md"
BACKEND_STANDARDS = "ai-specs/specs/backend-standards.mdc"
FRONTEND_STANDARDS = "ai-specs/specs/frontend-standards.mdc"
DOCUMENTATION_STANDARDS = "ai-specs/specs/documentation-standards.mdc"

RENDERED_DOCUMENTS: tuple[str, ...] = (
    AGENTS_MD,
    CLAUDE_MD,
    GEMINI_MD,
    ENV_EXAMPLE,
    KEY_FACTS,
    SPRINT_TRACKER,
    API_SPEC,
    BACKEND_STANDARDS,
    FRONTEND_STANDARDS,
    DOCUMENTATION_STANDARDS,
)

# Documents carrying both a ``backend`` and a ``frontend`` region.
SIDE_REGIONS: tuple[str, ...] = (
    AGENTS_MD,
    ENV_EXAMPLE,
    KEY_FACTS,
    SPRINT_TRACKER,
    DOCUMENTATION_STANDARDS,
)

# Spec files that only make sense when the project has that side.
SIDE_FILES: dict[str, tuple[str, ...]] = {
    "backend": (API_SPEC,),
    "frontend": (UI_COMPONENTS,),
}
SIDE_AGENTS: dict[str, tuple[str, ...]] = {
    "backend": BACKEND_AGENTS,
    "frontend": FRONTEND_AGENTS,
}

# Per AI tool: its config directory and its instruction file.
AI_TOOL_FILES: dict[str, tuple[str, str]] = {
    "claude": (".claude", CLAUDE_MD),
    "gemini": (".gemini", GEMINI_MD),
}

SPRINT_LENGTH = timedelta(days=14)

# Bracketed fill-in hints kept in key facts when a custom stack gives no detail.
_HINT_BACKEND = "[Framework, runtime, version]"
_HINT_DATABASE = "[Type, host, port]"
_HINT_ORM = "[Name, version]"
_HINT_FRONTEND = "[Framework, version]"
_HINT_DB_PORT = "[e.g., 5432]"
_HINT_DB_HOSTING = "[e.g., Neon, Supabase, RDS]"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def sprint_range(today: date | None = None) -> tuple[str, str]:
    """Return ISO start and end dates of a sprint starting *today*."""
    start = today or date.today()
    return start.isoformat(), (start + SPRINT_LENGTH).isoformat()


def api_base_url(port: int) -> str:
    return f"http://localhost:{port}/api"


def excluded_sides(config: Config) -> list[str]:
    sides = []
    if not config.has_backend:
        sides.append("backend")
    if not config.has_frontend:
        sides.append("frontend")
    return sides


def apply_sides(
    document: Document,
    rel_path: str,
    config: Config,
    sides: dict[str, bool] | None = None,
) -> None:
    """Keep or drop the ``backend`` / ``frontend`` regions of a document.

    *sides* overrides which sides are kept; by default they follow the
    project type.
    """
    if rel_path not in SIDE_REGIONS:
        return
    if sides is None:
        sides = {"backend": config.has_backend, "frontend": config.has_frontend}
    for side, included in sides.items():
        if included:
            document.keep(side)
        else:
            document.drop(side)


def is_excluded_agent(rel_path: Path, config: Config) -> bool:
    """True if *rel_path* (inside an AI tool dir) is an agent of an excluded side."""
    if len(rel_path.parts) != 2 or rel_path.parts[0] != "agents":
        return False
    return any(rel_path.name in SIDE_AGENTS[side] for side in excluded_sides(config))


def unused_ai_tools(config: Config) -> list[str]:
    tools = []
    if not config.uses_claude:
        tools.append("claude")
    if not config.uses_gemini:
        tools.append("gemini")
    return tools


def autonomy_values(config: Config) -> dict[str, object | None]:
    return {
        "autonomy_level": config.autonomy_level,
        "autonomy_name": config.autonomy_name,
    }


def standards_notes(config: Config) -> list[str]:
    """Reminders to adapt standards written for a different stack."""
    notes = []
    if config.has_backend and config.backend_preset.needs_standards_update:
        notes.append(
            f"Update {BACKEND_STANDARDS} with your backend stack patterns."
        )
    if config.has_frontend and config.frontend_preset.needs_standards_update:
        notes.append(
            f"Update {FRONTEND_STANDARDS} with your frontend stack patterns."
        )
    return notes


# ---------------------------------------------------------------------------
# Token values
# ---------------------------------------------------------------------------


def _backend_values(config: Config) -> dict[str, object | None]:
    preset = config.backend_preset
    if preset.is_custom:
        return {
            "backend_stack": config.custom_backend or _HINT_BACKEND,
            "database": _HINT_DATABASE,
            "orm": _HINT_ORM,
            "db_port": _HINT_DB_PORT,
            "database_hosting": _HINT_DB_HOSTING,
            "database_env_var": "DATABASE_URL",
            "database_url": DEFAULT_DATABASE_URL,
            "backend_patterns": config.custom_backend or "your backend stack",
        }
    info = database_info(preset.db)
    return {
        "backend_stack": f"{preset.framework}, {preset.runtime}",
        "database": f"{preset.db}, localhost, {preset.db_port}",
        "orm": preset.orm,
        "db_port": preset.db_port,
        "database_hosting": info.hosting_examples if info else _HINT_DB_HOSTING,
        "database_env_var": info.env_var if info else "DATABASE_URL",
        "database_url": preset.database_url or DEFAULT_DATABASE_URL,
        "backend_patterns": ", ".join(p for p in ("DDD", preset.framework, preset.orm) if p),
    }


def _frontend_values(config: Config) -> dict[str, object | None]:
    preset = config.frontend_preset
    if preset.is_custom:
        return {
            "frontend_stack": config.custom_frontend or _HINT_FRONTEND,
            "frontend_patterns": config.custom_frontend or "your frontend stack",
        }
    parts = (preset.framework, preset.styling, preset.components, preset.state)
    return {
        "frontend_stack": ", ".join(p for p in parts if p),
        "frontend_patterns": ", ".join(
            p for p in (preset.framework, preset.styling, preset.components) if p
        ),
    }


def build_values(config: Config, today: date | None = None) -> dict[str, object | None]:
    """Token mapping for a new project."""
    start, end = sprint_range(today)
    values: dict[str, object | None] = {
        "project_name": config.project_name,
        "description": config.description or None,
        "business_context": config.business_context.strip(),
        "branching": config.branching,
        "backend_port": config.backend_port,
        "frontend_port": config.frontend_port,
        "api_base_url": api_base_url(config.backend_port),
        "schema_path": None,
        "sprint_start": start,
        "sprint_end": end,
    }
    values.update(autonomy_values(config))
    values.update(_backend_values(config))
    values.update(_frontend_values(config))
    return values


def _shape(document: Document, rel_path: str, config: Config) -> None:
    apply_sides(document, rel_path, config)
    if rel_path == KEY_FACTS:
        if not config.business_context.strip():
            document.drop("project-information")
        document.drop("data-model")
    elif rel_path == SPRINT_TRACKER:
        document.drop("retrofit-testing")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def generate(
    config: Config,
    *,
    template_dir: Path | None = None,
    on_step: Callable[[str], None] | None = None,
    today: date | None = None,
) -> MaterializeResult:
    """Materialize the template corpus into ``config.project_dir``.

    The caller guarantees the destination is absent or empty.  Filesystem
    errors propagate; nothing is rolled back.
    """
    source = get_template_dir(template_dir)
    dest = config.project_dir
    result = MaterializeResult(dest)

    def step(message: str) -> None:
        logger.debug("Step: %s", message)
        if on_step is not None:
            on_step(message)

    step("Copying template files")
    shutil.copytree(source, dest, dirs_exist_ok=True)

    step(f"Configuring project: {config.project_name}")
    if config.has_backend:
        step(f"Setting backend: {config.backend_stack}")
    if config.has_frontend:
        step(f"Setting frontend: {config.frontend_stack}")
    step(f"Setting autonomy level: L{config.autonomy_level} ({config.autonomy_name})")
    step(f"Setting branching: {config.branching}")
    step("Setting sprint dates to today")

    values = build_values(config, today)
    for rel_path in RENDERED_DOCUMENTS:
        document = Document.load(dest / rel_path, rel_path)
        _shape(document, rel_path, config)
        (dest / rel_path).write_text(document.render(values), encoding="utf-8")

    for side in excluded_sides(config):
        kept = "frontend" if side == "backend" else "backend"
        step(f"Removing {side} agents ({kept} only)")
        for agent in SIDE_AGENTS[side]:
            for tool_dir, _ in AI_TOOL_FILES.values():
                remove_path(dest / tool_dir / "agents" / agent, result)
        for rel_path in SIDE_FILES[side]:
            remove_path(dest / rel_path, result)

    for tool in unused_ai_tools(config):
        tool_dir, instructions = AI_TOOL_FILES[tool]
        kept = "Claude" if tool == "gemini" else "Gemini"
        step(f"Removing {tool.title()} config ({kept} only)")
        remove_path(dest / tool_dir, result)
        remove_path(dest / instructions, result)

    result.written.extend(
        sorted(result.rel(p) for p in dest.rglob("*") if p.is_file())
    )
    for note in standards_notes(config):
        result.note(note)
    logger.info("Generated %d files in %s", len(result.written), dest)
    return result
