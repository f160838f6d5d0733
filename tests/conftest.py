"""Shared test fixtures for SDD DevFlow."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def write_tree(root: Path, files: dict[str, str]) -> None:
    """Create *files* (relative path -> content) under *root*."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


@pytest.fixture()
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Factory for an existing Node.js project under ``tmp_path/app``."""

    def factory(
        *,
        name: str = "shop-api",
        description: str = "",
        dependencies: dict[str, str] | None = None,
        dev_dependencies: dict[str, str] | None = None,
        scripts: dict[str, str] | None = None,
        files: dict[str, str] | None = None,
        extra: dict[str, Any] | None = None,
    ) -> Path:
        root = tmp_path / "app"
        root.mkdir(exist_ok=True)
        pkg: dict[str, Any] = {"name": name, "version": "1.0.0"}
        if description:
            pkg["description"] = description
        if dependencies:
            pkg["dependencies"] = dependencies
        if dev_dependencies:
            pkg["devDependencies"] = dev_dependencies
        if scripts:
            pkg["scripts"] = scripts
        if extra:
            pkg.update(extra)
        (root / "package.json").write_text(json.dumps(pkg, indent=2), encoding="utf-8")
        write_tree(root, files or {})
        return root

    return factory


@pytest.fixture()
def express_prisma_project(make_project: Callable[..., Path]) -> Path:
    """Express + Prisma + PostgreSQL backend with an MVC source tree."""
    return make_project(
        description="Online shop backend",
        dependencies={"express": "^4.18.0", "@prisma/client": "^5.0.0"},
        dev_dependencies={"jest": "^29.0.0", "typescript": "^5.0.0"},
        files={
            "tsconfig.json": "{}",
            "prisma/schema.prisma": (
                'datasource db {\n  provider = "postgresql"\n  url = env("DATABASE_URL")\n}\n'
            ),
            ".env": 'PORT="4000"\nDATABASE_URL=postgresql://localhost:5432/shop\n',
            "src/controllers/user.controller.ts": "export {};\n",
            "src/models/user.ts": "export {};\n",
            "src/routes/index.ts": "export {};\n",
            "src/app.ts": "export {};\n",
            ".gitignore": "node_modules/\n",
        },
    )
