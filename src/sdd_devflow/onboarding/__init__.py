"""Onboarding domain: presets, project scanning, and configuration."""

from sdd_devflow.onboarding.config import (
    Config,
    build_default_config,
    build_init_default_config,
    infer_project_type,
)
from sdd_devflow.onboarding.presets import (
    AI_TOOLS,
    AUTONOMY_LEVELS,
    BACKEND_STACKS,
    BRANCHING_STRATEGIES,
    FRONTEND_STACKS,
    PROJECT_TYPES,
    default_entry,
    find_entry,
)
from sdd_devflow.onboarding.scanner import ScanResult, scan_project
from sdd_devflow.onboarding.wizard import format_scan_summary, run_init_wizard, run_wizard

__all__ = [
    "AI_TOOLS",
    "AUTONOMY_LEVELS",
    "BACKEND_STACKS",
    "BRANCHING_STRATEGIES",
    "FRONTEND_STACKS",
    "PROJECT_TYPES",
    "Config",
    "ScanResult",
    "build_default_config",
    "build_init_default_config",
    "default_entry",
    "find_entry",
    "format_scan_summary",
    "infer_project_type",
    "run_init_wizard",
    "run_wizard",
    "scan_project",
]
