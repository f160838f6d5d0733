"""Config value threaded into materialization, plus default builders."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from sdd_devflow.onboarding.presets import (
    AI_TOOLS,
    AUTONOMY_LEVELS,
    BRANCHING_STRATEGIES,
    DEFAULT_BACKEND,
    DEFAULT_BACKEND_PORT,
    DEFAULT_FRONTEND,
    DEFAULT_FRONTEND_PORT,
    INIT_AUTONOMY_LEVEL,
    PROJECT_TYPES,
    AiTool,
    BackendStack,
    FrontendStack,
    ProjectType,
    autonomy_level,
    default_entry,
    find_entry,
)

if TYPE_CHECKING:
    from sdd_devflow.onboarding.scanner import ScanResult
    from sdd_devflow.settings import Settings

DATA_MODEL_FORMATS = ("prisma", "other")


@dataclass(frozen=True)
class Config:
    """Everything the materializers need, built once and never mutated.

    Preset fields hold the shared catalog instances.  ``custom_backend`` and
    ``custom_frontend`` carry the user's free-text stack when the matching
    preset is ``custom``.  Retrofit runs set ``is_init`` and embed the
    ``ScanResult`` they were built from.
    """

    project_name: str
    project_dir: Path
    project_type: ProjectType
    backend_preset: BackendStack
    frontend_preset: FrontendStack
    ai_tools: AiTool
    autonomy_level: int
    branching: str
    backend_port: int = DEFAULT_BACKEND_PORT
    frontend_port: int = DEFAULT_FRONTEND_PORT
    description: str = ""
    business_context: str = ""
    custom_backend: str = ""
    custom_frontend: str = ""
    is_init: bool = False
    scan_result: ScanResult | None = None
    openapi_path: str | None = None
    data_model_path: str | None = None
    data_model_format: str | None = None
    stack_overridden: bool = False

    def __post_init__(self) -> None:
        # Unknown autonomy levels and branching keys raise LookupError.
        autonomy_level(self.autonomy_level)
        find_entry(BRANCHING_STRATEGIES, self.branching)
        if self.data_model_format not in (None, *DATA_MODEL_FORMATS):
            msg = f"Unknown data model format '{self.data_model_format}'"
            raise ValueError(msg)
        if self.is_init and self.scan_result is None:
            msg = "Retrofit config requires a scan result"
            raise ValueError(msg)

    @property
    def autonomy_name(self) -> str:
        return autonomy_level(self.autonomy_level).name

    @property
    def has_backend(self) -> bool:
        return self.project_type.has_backend

    @property
    def has_frontend(self) -> bool:
        return self.project_type.has_frontend

    @property
    def uses_claude(self) -> bool:
        return self.ai_tools.uses_claude

    @property
    def uses_gemini(self) -> bool:
        return self.ai_tools.uses_gemini

    @property
    def backend_stack(self) -> str:
        """Human label for the backend: the preset label or the custom text."""
        if self.backend_preset.is_custom:
            return self.custom_backend or "Custom backend"
        return self.backend_preset.label

    @property
    def frontend_stack(self) -> str:
        """Human label for the frontend: the preset label or the custom text."""
        if self.frontend_preset.is_custom:
            return self.custom_frontend or "Custom frontend"
        return self.frontend_preset.label


def build_default_config(
    project_name: str,
    *,
    cwd: Path | None = None,
    settings: Settings | None = None,
) -> Config:
    """Config for a new project using the default catalog entries."""
    base = cwd if cwd is not None else Path.cwd()
    return Config(
        project_name=project_name,
        project_dir=(base / project_name).resolve(),
        project_type=default_entry(PROJECT_TYPES),
        backend_preset=DEFAULT_BACKEND,
        frontend_preset=DEFAULT_FRONTEND,
        ai_tools=_ai_tools(settings),
        autonomy_level=(
            settings.autonomy_level if settings else default_entry(AUTONOMY_LEVELS).level
        ),
        branching=settings.branching if settings else default_entry(BRANCHING_STRATEGIES).key,
        backend_port=settings.backend_port if settings else DEFAULT_BACKEND_PORT,
        frontend_port=settings.frontend_port if settings else DEFAULT_FRONTEND_PORT,
    )


def infer_project_type(scan: ScanResult) -> ProjectType:
    """Fullstack if both sides were detected, else the detected side.

    Nothing detected falls back to fullstack.
    """
    if scan.backend.detected and not scan.frontend.detected:
        return find_entry(PROJECT_TYPES, "backend")
    if scan.frontend.detected and not scan.backend.detected:
        return find_entry(PROJECT_TYPES, "frontend")
    return find_entry(PROJECT_TYPES, "fullstack")


def build_init_default_config(
    scan: ScanResult,
    project_dir: Path,
    *,
    settings: Settings | None = None,
) -> Config:
    """Retrofit config derived from *scan*.

    Starts at the most conservative autonomy level and imports any OpenAPI
    document or Prisma schema the scan found.
    """
    docs = scan.existing_docs
    if scan.backend.port is not None:
        backend_port = scan.backend.port
    elif settings is not None:
        backend_port = settings.backend_port
    else:
        backend_port = DEFAULT_BACKEND_PORT

    branching = settings.branching if settings else default_entry(BRANCHING_STRATEGIES).key
    if scan.git_branch == "develop":
        branching = "gitflow"

    return Config(
        project_name=scan.project_name,
        project_dir=project_dir,
        description=scan.description,
        project_type=infer_project_type(scan),
        backend_preset=DEFAULT_BACKEND,
        frontend_preset=DEFAULT_FRONTEND,
        ai_tools=_ai_tools(settings),
        autonomy_level=settings.init_autonomy_level if settings else INIT_AUTONOMY_LEVEL,
        branching=branching,
        backend_port=backend_port,
        frontend_port=settings.frontend_port if settings else DEFAULT_FRONTEND_PORT,
        is_init=True,
        scan_result=scan,
        openapi_path=docs.openapi_path,
        data_model_path=docs.prisma_schema_path,
        data_model_format="prisma" if docs.has_prisma_schema else None,
    )


def _ai_tools(settings: Settings | None) -> AiTool:
    if settings is None:
        return default_entry(AI_TOOLS)
    return find_entry(AI_TOOLS, settings.ai_tools)
