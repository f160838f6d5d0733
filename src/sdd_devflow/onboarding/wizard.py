"""Interactive wizards that turn prompt answers into a ``Config``."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

from sdd_devflow.onboarding.config import Config, build_init_default_config
from sdd_devflow.onboarding.presets import (
    AI_TOOLS,
    AUTONOMY_LEVELS,
    BACKEND_STACKS,
    BRANCHING_STRATEGIES,
    DEFAULT_BACKEND_PORT,
    DEFAULT_FRONTEND_PORT,
    FRONTEND_STACKS,
    PROJECT_TYPES,
    PresetEntry,
    default_entry,
    find_entry,
)

if TYPE_CHECKING:
    from sdd_devflow.onboarding.scanner import ScanResult
    from sdd_devflow.settings import Settings

logger = logging.getLogger(__name__)

_E = TypeVar("_E", bound=PresetEntry)

SCAN_PATTERN_LABELS = {
    "mvc": "MVC",
    "layered": "Layered",
    "ddd": "DDD (Domain-Driven Design)",
    "feature-based": "Feature-based",
    "handler-based": "Handler-based",
    "flat": "Flat structure",
    "unknown": "Unknown",
}


def format_scan_summary(scan: ScanResult) -> str:
    """Human-readable summary of what the scanner detected."""
    lines = [
        f"    Project:       {scan.project_name}",
        f"    Language:      {'TypeScript' if scan.language == 'typescript' else 'JavaScript'}",
    ]

    if scan.backend.detected:
        parts = [p for p in (scan.backend.framework, scan.backend.orm, scan.backend.db) if p]
        lines.append(f"    Backend:       {' + '.join(parts) or 'Detected (unknown stack)'}")
    else:
        lines.append("    Backend:       Not detected")

    if scan.frontend.detected:
        fe = scan.frontend
        parts = [p for p in (fe.framework, fe.styling, fe.components, fe.state) if p]
        lines.append(f"    Frontend:      {' + '.join(parts) or 'Detected (unknown stack)'}")
    else:
        lines.append("    Frontend:      Not detected")

    pattern = SCAN_PATTERN_LABELS.get(scan.src_structure.pattern, "Unknown")
    lines.append(f"    Architecture:  {pattern}")

    if scan.tests.framework != "none":
        lines.append(
            f"    Tests:         {scan.tests.framework} ({scan.tests.test_files} test files)"
        )
    else:
        lines.append("    Tests:         None detected")

    lines.append(f"    Monorepo:      {'Yes' if scan.is_monorepo else 'No'}")

    docs = scan.existing_docs
    if docs.has_openapi:
        lines.append(f"    OpenAPI:       Found ({docs.openapi_path})")
    if docs.has_prisma_schema:
        lines.append(f"    Prisma schema: Found ({docs.prisma_schema_path})")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Prompt helpers
# ---------------------------------------------------------------------------


def _section(console: Any, title: str) -> None:
    console.print(f"\n[bold]── {title} ──[/bold]")


def _choose(
    console: Any,
    question: str,
    entries: tuple[_E, ...],
    default_key: str | None = None,
) -> _E:
    """Print a numbered menu of catalog entries and return the chosen one."""
    from rich.markup import escape
    from rich.prompt import Prompt

    default = default_key or default_entry(entries).key
    console.print(f"\n  {question}")
    for entry in entries:
        marker = " [dim](default)[/dim]" if entry.key == default else ""
        desc = f" [dim]- {escape(entry.desc)}[/dim]" if entry.desc else ""
        console.print(f"    [cyan]{entry.key}[/cyan]  {escape(entry.label)}{marker}{desc}")
    key = Prompt.ask("  Choice", choices=[e.key for e in entries], default=default)
    return find_entry(entries, key)


def _yes_no(question: str, default: bool = True) -> bool:
    from rich.prompt import Prompt

    answer = Prompt.ask(question, choices=["y", "n"], default="y" if default else "n")
    return answer == "y"


def _ask_multiline(console: Any, question: str) -> str:
    """Collect lines until an empty one; an empty first line skips."""
    from rich.prompt import Prompt

    console.print(f"\n  {question}")
    console.print("  [dim](Enter text below. Empty line to finish, or press Enter to skip)[/dim]")
    lines: list[str] = []
    while True:
        line = Prompt.ask("  >", default="", show_default=False)
        if not line.strip():
            break
        lines.append(line)
    return "\n".join(lines)


def _ask_port(question: str, default: int) -> int:
    from rich.prompt import Prompt

    answer = Prompt.ask(question, default=str(default))
    try:
        port = int(answer)
    except ValueError:
        logger.warning("Invalid port '%s', using %d", answer, default)
        return default
    if not 0 < port < 65536:
        logger.warning("Port %d out of range, using %d", port, default)
        return default
    return port


def _confirm(console: Any) -> bool:
    if _yes_no("\nProceed?", default=True):
        return True
    console.print("\n  Cancelled.")
    return False


# ---------------------------------------------------------------------------
# New project
# ---------------------------------------------------------------------------


def run_wizard(
    initial_name: str | None = None,
    *,
    cwd: Path | None = None,
    settings: Settings | None = None,
) -> Config | None:
    """Ask for everything a new project needs.

    Returns ``None`` when the user declines the final confirmation.
    """
    from rich.console import Console
    from rich.markup import escape
    from rich.prompt import Prompt

    console = Console()
    base = cwd if cwd is not None else Path.cwd()

    console.print("\n[bold]Create SDD DevFlow Project[/bold]")
    console.print("  Spec-Driven Development workflow for AI-assisted coding.")

    _section(console, "Step 1: Project Basics")
    name = ""
    while not name:
        name = Prompt.ask("Project name", default=initial_name or "").strip()
        if not name:
            console.print("  [red]Project name is required.[/red]")
    project_dir = Prompt.ask("Project directory", default=f"./{name}")
    description = Prompt.ask("Brief project description", default="")

    _section(console, "Step 2: Business Context")
    business_context = _ask_multiline(
        console, "Business context: helps AI agents understand your project (optional)"
    )

    _section(console, "Step 3: Project Type & Tech Stack")
    project_type = _choose(console, "Project type:", PROJECT_TYPES)
    backend = default_entry(BACKEND_STACKS)
    frontend = default_entry(FRONTEND_STACKS)
    custom_backend = custom_frontend = ""
    if project_type.has_backend:
        backend = _choose(console, "Backend stack:", BACKEND_STACKS)
        if backend.is_custom:
            custom_backend = Prompt.ask("Describe your backend stack", default="")
    if project_type.has_frontend:
        frontend = _choose(console, "Frontend stack:", FRONTEND_STACKS)
        if frontend.is_custom:
            custom_frontend = Prompt.ask("Describe your frontend stack", default="")

    needs_backend = project_type.has_backend and backend.needs_standards_update
    needs_frontend = project_type.has_frontend and frontend.needs_standards_update
    if needs_backend or needs_frontend:
        console.print("\n  Note: remember to update these files with your stack details:")
        if needs_backend:
            console.print("     - ai-specs/specs/backend-standards.mdc")
        if needs_frontend:
            console.print("     - ai-specs/specs/frontend-standards.mdc")

    _section(console, "Step 4: Configuration")
    ai_tools = _choose(console, "AI tools:", AI_TOOLS, settings.ai_tools if settings else None)
    autonomy = _choose(
        console,
        "Autonomy level:",
        AUTONOMY_LEVELS,
        str(settings.autonomy_level) if settings else None,
    )
    branching = _choose(
        console,
        "Branching strategy:",
        BRANCHING_STRATEGIES,
        settings.branching if settings else None,
    )
    backend_port = settings.backend_port if settings else DEFAULT_BACKEND_PORT
    if project_type.has_backend:
        backend_port = _ask_port("Backend port", backend_port)

    config = Config(
        project_name=name,
        project_dir=(base / project_dir).resolve(),
        description=description,
        business_context=business_context,
        project_type=project_type,
        backend_preset=backend,
        frontend_preset=frontend,
        custom_backend=custom_backend,
        custom_frontend=custom_frontend,
        ai_tools=ai_tools,
        autonomy_level=autonomy.level,
        branching=branching.key,
        backend_port=backend_port,
        frontend_port=settings.frontend_port if settings else DEFAULT_FRONTEND_PORT,
    )

    _section(console, "Summary")
    console.print(f"  Project:     {escape(config.project_name)}")
    console.print(f"  Directory:   {escape(str(config.project_dir))}")
    if config.description:
        console.print(f"  Description: {escape(config.description)}")
    console.print(f"  Type:        {project_type.label}")
    if config.has_backend:
        console.print(f"  Backend:     {escape(config.backend_stack)}")
    if config.has_frontend:
        console.print(f"  Frontend:    {escape(config.frontend_stack)}")
    console.print(f"  AI tools:    {ai_tools.label}")
    console.print(f"  Autonomy:    L{config.autonomy_level} {config.autonomy_name}")
    console.print(f"  Branching:   {branching.label}")
    if config.has_backend:
        console.print(f"  Port:        {config.backend_port}")

    return config if _confirm(console) else None


# ---------------------------------------------------------------------------
# Existing project
# ---------------------------------------------------------------------------


def run_init_wizard(
    scan: ScanResult,
    project_dir: Path,
    *,
    settings: Settings | None = None,
) -> Config | None:
    """Confirm and complete what the scan found for a retrofit.

    Returns ``None`` when the user declines the final confirmation.
    """
    from rich.console import Console
    from rich.markup import escape
    from rich.prompt import Prompt

    console = Console()
    defaults = build_init_default_config(scan, project_dir, settings=settings)

    console.print("\n[bold]Analyzing existing project...[/bold]\n")
    console.print("  Detected:")
    console.print(escape(format_scan_summary(scan)))

    _section(console, "Step 1: Confirm & Complete")
    description = Prompt.ask("Project description", default=scan.description)
    project_type = defaults.project_type
    stack_overridden = False
    if not _yes_no("Is the detected stack correct?", default=True):
        console.print("\n  The standards files will include TODO markers for you to adjust.")
        project_type = _choose(console, "Project type:", PROJECT_TYPES, project_type.key)
        stack_overridden = True

    _section(console, "Step 2: Business Context")
    business_context = _ask_multiline(
        console, "Business context: helps AI agents understand your project (optional)"
    )

    _section(console, "Step 3: Existing Documentation")
    docs = scan.existing_docs
    openapi_path: str | None = None
    if docs.has_openapi:
        console.print(f"\n  OpenAPI file detected: {escape(docs.openapi_path or '')}")
        if _yes_no("Import this as your API spec?", default=True):
            openapi_path = docs.openapi_path
    elif project_type.has_backend and _yes_no(
        "Do you have an existing OpenAPI/Swagger file?", default=False
    ):
        openapi_path = Prompt.ask("Path to OpenAPI/Swagger file", default="").strip() or None

    data_model_path = defaults.data_model_path
    data_model_format = defaults.data_model_format
    if docs.has_prisma_schema:
        console.print(f"\n  Prisma schema detected: {escape(docs.prisma_schema_path or '')}")
        console.print("  This will be referenced in your project facts.")
    elif project_type.has_backend:
        console.print("\n  Do you have a data model definition?")
        console.print("    [cyan]prisma[/cyan]  Prisma schema")
        console.print("    [cyan]other[/cyan]   Other format (SQL, ERD, Mermaid, etc.)")
        console.print("    [cyan]no[/cyan]      No [dim](default)[/dim]")
        choice = Prompt.ask("  Choice", choices=["prisma", "other", "no"], default="no")
        if choice == "prisma":
            data_model_path = Prompt.ask("Path to Prisma schema", default="prisma/schema.prisma")
            data_model_format = "prisma"
        elif choice == "other":
            path = Prompt.ask("Path to data model file", default="").strip()
            if path:
                data_model_path = path
                data_model_format = "other"

    _section(console, "Step 4: Configuration")
    ai_tools = _choose(console, "AI tools:", AI_TOOLS, defaults.ai_tools.key)
    autonomy = _choose(console, "Autonomy level:", AUTONOMY_LEVELS, str(defaults.autonomy_level))
    branching = _choose(console, "Branching strategy:", BRANCHING_STRATEGIES, defaults.branching)

    config = dataclasses.replace(
        defaults,
        description=description,
        business_context=business_context,
        project_type=project_type,
        ai_tools=ai_tools,
        autonomy_level=autonomy.level,
        branching=branching.key,
        openapi_path=openapi_path,
        data_model_path=data_model_path,
        data_model_format=data_model_format,
        stack_overridden=stack_overridden,
    )

    _section(console, "Summary")
    console.print(f"  Adding SDD DevFlow to: {escape(config.project_name)}")
    if scan.backend.detected:
        parts = [p for p in (scan.backend.framework, scan.backend.orm, scan.backend.db) if p]
        console.print(f"  Backend:      {' + '.join(parts) or 'Detected'} (detected)")
    if scan.frontend.detected:
        parts = [p for p in (scan.frontend.framework, scan.frontend.styling) if p]
        console.print(f"  Frontend:     {' + '.join(parts)} (detected)")
    console.print(f"  Type:         {project_type.label}")
    console.print(f"  Architecture: {scan.src_structure.pattern}")
    console.print(f"  AI tools:     {ai_tools.label}")
    console.print(f"  Autonomy:     L{config.autonomy_level} {config.autonomy_name}")
    console.print(f"  Branching:    {branching.label}")
    console.print("\n  [yellow]Will NOT modify your existing code or configuration.[/yellow]")
    console.print("  [yellow]Will NOT overwrite existing files.[/yellow]")

    return config if _confirm(console) else None
