"""Retrofit materializer: add SDD DevFlow to an existing project.

Nothing that already exists is overwritten.  Every write goes through
``write_if_missing`` / ``copy_file_if_missing`` and existing paths end up in
``MaterializeResult.skipped``.  The only edit to a pre-existing file is
appending the SDD DevFlow block to ``.gitignore``.
"""

from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from sdd_devflow.materialize.adapt import (
    adapt_agents_md,
    adapt_backend_standards,
    adapt_frontend_standards,
    build_retrofit_values,
    configure_key_facts,
    configure_sprint_tracker,
    key_facts_sides,
    schema_path,
)
from sdd_devflow.materialize.files import (
    MaterializeResult,
    copy_file_if_missing,
    get_template_dir,
    merge_copy_tree,
    write_if_missing,
)
from sdd_devflow.materialize.generator import (
    AGENTS_MD,
    AI_TOOL_FILES,
    API_SPEC,
    BACKEND_STANDARDS,
    DOCUMENTATION_STANDARDS,
    ENV_EXAMPLE,
    FRONTEND_STANDARDS,
    KEY_FACTS,
    SPRINT_TRACKER,
    UI_COMPONENTS,
    apply_sides,
    is_excluded_agent,
)
from sdd_devflow.materialize.templating import Document

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date
    from pathlib import Path

    from sdd_devflow.onboarding.config import Config

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"
GITIGNORE_MARKER = "SDD DevFlow"
GITIGNORE_BLOCK = "\n# SDD DevFlow\ndocs/tickets/*.md\n!docs/tickets/.gitkeep\n"

BASE_STANDARDS = "ai-specs/specs/base-standards.mdc"
BUGS = "docs/project_notes/bugs.md"
DECISIONS = "docs/project_notes/decisions.md"
TICKETS_KEEP = "docs/tickets/.gitkeep"

_INSTALL_LABELS = {
    "claude": "Installing Claude Code config (agents, skills, commands, hooks)",
    "gemini": "Installing Gemini config (agents, skills, commands)",
}


def append_gitignore(project_dir: Path) -> bool | None:
    """Append the SDD DevFlow ignore block to an existing ``.gitignore``.

    Returns ``True`` when appended, ``False`` when the block was already
    present, and ``None`` when the project has no ``.gitignore`` (one is never
    created).
    """
    gitignore = project_dir / GITIGNORE
    if not gitignore.is_file():
        return None
    existing = gitignore.read_text(encoding="utf-8")
    if GITIGNORE_MARKER in existing:
        return False
    with gitignore.open("a", encoding="utf-8") as fh:
        if existing and not existing.endswith("\n"):
            fh.write("\n")
        fh.write(GITIGNORE_BLOCK)
    logger.info("Appended SDD entries to %s", gitignore)
    return True


def generate_init(
    config: Config,
    *,
    template_dir: Path | None = None,
    on_step: Callable[[str], None] | None = None,
    today: date | None = None,
) -> MaterializeResult:
    """Install the scaffolding into ``config.project_dir`` without overwriting."""
    scan = config.scan_result
    if scan is None:
        msg = "generate_init requires a config built from a scan"
        raise ValueError(msg)

    source = get_template_dir(template_dir)
    dest = config.project_dir
    result = MaterializeResult(dest)
    values = build_retrofit_values(config, today)

    def step(message: str) -> None:
        logger.debug("Step: %s", message)
        if on_step is not None:
            on_step(message)

    def render(
        rel_path: str,
        shape: Callable[[Document], None] | None = None,
        sides: dict[str, bool] | None = None,
    ) -> bool:
        target = dest / rel_path
        if target.exists():
            logger.debug("Skipping existing file: %s", target)
            result.record(target, False)
            return False
        document = Document.load(source / rel_path, rel_path)
        apply_sides(document, rel_path, config, sides)
        if shape is not None:
            shape(document)
        created = write_if_missing(target, document.render(values))
        result.record(target, created)
        return created

    def copy(rel_path: str) -> None:
        target = dest / rel_path
        result.record(target, copy_file_if_missing(source / rel_path, target))

    # 1. AI tool configs, minus agents for an excluded side.
    instructions_written = False
    used = {"claude": config.uses_claude, "gemini": config.uses_gemini}
    for tool, (tool_dir, instructions) in AI_TOOL_FILES.items():
        if not used[tool]:
            continue
        step(_INSTALL_LABELS[tool])
        merge_copy_tree(
            source / tool_dir,
            dest / tool_dir,
            result,
            exclude=lambda rel: is_excluded_agent(rel, config),
        )
        instructions_written = render(instructions) or instructions_written

    # 2. Standards.
    step("Creating ai-specs/specs/ (standards files)")
    copy(BASE_STANDARDS)
    render(DOCUMENTATION_STANDARDS)
    adapted: list[str] = []
    if config.has_backend and render(
        BACKEND_STANDARDS, lambda doc: adapt_backend_standards(doc, scan)
    ):
        adapted.append(BACKEND_STANDARDS)
    if config.has_frontend and render(
        FRONTEND_STANDARDS, lambda doc: adapt_frontend_standards(doc, scan)
    ):
        adapted.append(FRONTEND_STANDARDS)

    # 3. Project notes and specs.
    step("Creating docs/project_notes/ (sprint tracker, memory)")
    render(KEY_FACTS, lambda doc: configure_key_facts(doc, config), key_facts_sides(config))
    copy(BUGS)
    copy(DECISIONS)
    render(SPRINT_TRACKER, lambda doc: configure_sprint_tracker(doc, scan))
    if config.has_frontend:
        copy(UI_COMPONENTS)
    result.record(dest / TICKETS_KEEP, write_if_missing(dest / TICKETS_KEEP, ""))

    # 4. Existing documentation.
    if config.openapi_path:
        step(f"Importing OpenAPI spec → {API_SPEC}")
        _import_file(dest, config.openapi_path, API_SPEC, result)
    elif config.has_backend:
        render(API_SPEC)

    if config.data_model_path and config.data_model_format == "other":
        step("Importing data model → docs/specs/")
        name = PurePosixPath(config.data_model_path).name
        _import_file(dest, config.data_model_path, f"docs/specs/{name}", result)

    # 5. AGENTS.md
    step(f"Creating {AGENTS_MD}")
    render(AGENTS_MD, lambda doc: adapt_agents_md(doc, scan))

    if instructions_written:
        step(f"Setting autonomy level: L{config.autonomy_level} ({config.autonomy_name})")

    # 6. .gitignore
    appended = append_gitignore(dest)
    if appended:
        step("Appended SDD entries to .gitignore")
    elif appended is None:
        result.note(
            ".gitignore not found. Add these entries manually: "
            "docs/tickets/*.md and !docs/tickets/.gitkeep"
        )

    # 7. .env.example
    render(ENV_EXAMPLE)

    _add_review_notes(config, adapted, result)
    logger.info(
        "Retrofit: %d created, %d skipped", len(result.written), len(result.skipped)
    )
    return result


def _import_file(dest: Path, source_rel: str, target_rel: str, result: MaterializeResult) -> None:
    source = (dest / source_rel).resolve()
    if not source.is_file():
        logger.warning("Import source not found: %s", source)
        result.note(f"{source_rel} not found; nothing was imported into {target_rel}.")
        return
    target = dest / target_rel
    result.record(target, copy_file_if_missing(source, target))


def _add_review_notes(config: Config, adapted: list[str], result: MaterializeResult) -> None:
    scan = config.scan_result
    if scan is None:
        return
    if adapted:
        result.note(
            "Review before your first sprint: "
            + ", ".join(adapted)
            + " were generated from project analysis. Adjust patterns and"
            " conventions to match your team's actual practices."
        )
    if scan.tests.estimated_coverage in ("none", "low"):
        if scan.tests.test_files == 0:
            coverage = "No test files detected."
        else:
            coverage = f"Test coverage appears low ({scan.tests.test_files} test files found)."
        result.note(f"{coverage} Consider starting Sprint 0 with retrofit testing tasks.")
    if config.data_model_format == "prisma" and schema_path(config):
        result.note(
            f"Prisma schema found at {config.data_model_path}. Referenced in {KEY_FACTS}."
        )
    if config.stack_overridden:
        result.note(
            "Project type was changed from what the scan detected. Fill in the stack"
            f" details the scan missed in {KEY_FACTS} and the ai-specs/specs/ standards."
        )
