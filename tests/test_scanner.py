"""Tests for sdd_devflow.onboarding.scanner: stack and layout detection."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from sdd_devflow.onboarding.scanner import (
    BACKEND_FRAMEWORKS,
    FRONTEND_FRAMEWORKS,
    classify_pattern,
    detect_architecture,
    detect_backend,
    detect_language,
    estimate_coverage,
    first_match,
    scan_project,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


def write_tree(root: Path, files: dict[str, str]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Detection rules
# ---------------------------------------------------------------------------


class TestFirstMatch:
    def test_meta_framework_wins_over_library(self) -> None:
        deps = {"react": "^18", "next": "^14"}
        assert first_match(FRONTEND_FRAMEWORKS, deps) == "Next.js"

    def test_no_match(self) -> None:
        assert first_match(BACKEND_FRAMEWORKS, {"lodash": "^4"}) is None

    def test_empty_version_is_not_a_dependency(self) -> None:
        assert first_match(BACKEND_FRAMEWORKS, {"express": ""}) is None


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class TestDetectBackend:
    def test_express_prisma_postgres(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            dependencies={"express": "^4.18.0", "@prisma/client": "^5.0.0"},
            files={
                "prisma/schema.prisma": (
                    'datasource db {\n  provider = "postgresql"\n'
                    '  url = env("DATABASE_URL")\n}\n'
                ),
            },
        )
        backend = scan_project(root).backend
        assert backend.detected is True
        assert backend.framework == "Express"
        assert backend.orm == "Prisma"
        assert backend.db == "PostgreSQL"

    def test_orm_without_framework(self, make_project: Callable[..., Path]) -> None:
        root = make_project(dependencies={"knex": "^3.0.0"})
        backend = scan_project(root).backend
        assert backend.detected is True
        assert backend.framework is None
        assert backend.orm == "Knex"

    def test_generator_block_before_datasource(
        self, make_project: Callable[..., Path]
    ) -> None:
        root = make_project(
            dependencies={"@prisma/client": "^5.0.0"},
            files={
                "prisma/schema.prisma": (
                    "generator client {\n  output = \"../generated\"\n}\n\n"
                    'datasource db {\n  provider = "mysql"\n  url = env("DATABASE_URL")\n}\n'
                ),
            },
        )
        assert scan_project(root).backend.db == "MySQL"

    def test_generator_provider_is_not_the_database(
        self, make_project: Callable[..., Path]
    ) -> None:
        root = make_project(
            dependencies={"@prisma/client": "^5.0.0"},
            files={
                "prisma/schema.prisma": (
                    'generator client {\n  provider = "prisma-client-js"\n}\n\n'
                    'datasource db {\n  provider = "sqlite"\n}\n'
                ),
            },
        )
        assert scan_project(root).backend.db == "SQLite"

    def test_quoted_env_port(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            dependencies={"express": "^4.18.0"},
            files={".env": 'PORT="5000"\n'},
        )
        port = scan_project(root).backend.port
        assert port == 5000
        assert isinstance(port, int)

    def test_port_from_scripts(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            dependencies={"fastify": "^4.0.0"},
            scripts={"dev": "node server.js --port 8080"},
        )
        assert scan_project(root).backend.port == 8080

    def test_mongoose_implies_mongodb(self, make_project: Callable[..., Path]) -> None:
        root = make_project(dependencies={"express": "^4", "mongoose": "^8"})
        backend = scan_project(root).backend
        assert backend.orm == "Mongoose"
        assert backend.db == "MongoDB"

    def test_database_from_env_only(self, make_project: Callable[..., Path]) -> None:
        root = make_project(files={".env.example": "MONGODB_URI=mongodb://localhost/x\n"})
        backend = scan_project(root).backend
        assert backend.detected is True
        assert backend.db == "MongoDB"
        assert backend.framework is None

    def test_database_url_prefix(self, tmp_path: Path) -> None:
        write_tree(tmp_path, {".env": "DATABASE_URL='mysql://root@localhost/app'\n"})
        assert detect_backend(tmp_path, {}).db == "MySQL"

    def test_nothing_detected(self, make_project: Callable[..., Path]) -> None:
        backend = scan_project(make_project(dependencies={"lodash": "^4"})).backend
        assert backend.detected is False
        assert backend.port is None


# ---------------------------------------------------------------------------
# Frontend
# ---------------------------------------------------------------------------


class TestDetectFrontend:
    def test_next_tailwind_radix_zustand(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            dependencies={
                "next": "^14",
                "react": "^18",
                "@radix-ui/react-dialog": "^1",
                "zustand": "^4",
            },
            dev_dependencies={"tailwindcss": "^3"},
        )
        frontend = scan_project(root).frontend
        assert frontend.detected is True
        assert frontend.framework == "Next.js"
        assert frontend.styling == "Tailwind CSS"
        assert frontend.components == "Radix UI"
        assert frontend.state == "Zustand"

    def test_styling_without_framework_is_not_detected(
        self, make_project: Callable[..., Path]
    ) -> None:
        frontend = scan_project(make_project(dependencies={"tailwindcss": "^3"})).frontend
        assert frontend.detected is False
        assert frontend.styling == "Tailwind CSS"


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestArchitecture:
    def test_mvc(self, tmp_path: Path) -> None:
        for name in ("controllers", "routes", "models", "middleware"):
            (tmp_path / "src" / name).mkdir(parents=True)
        assert detect_architecture(tmp_path).pattern == "mvc"

    @pytest.mark.parametrize(
        ("dirs", "expected"),
        [
            (["domain", "application", "infrastructure"], "ddd"),
            (["handlers", "controllers", "managers", "models"], "layered"),
            (["features", "shared", "lib", "config"], "feature-based"),
            (["handlers", "routes", "utils", "config"], "handler-based"),
            (["utils", "config"], "flat"),
            (["a", "b", "c", "d"], "unknown"),
        ],
    )
    def test_classify_pattern(self, dirs: list[str], expected: str) -> None:
        assert classify_pattern(dirs) == expected

    def test_nested_dir_names_count(self) -> None:
        assert classify_pattern(["api", "api/controllers", "api/models", "x"]) == "mvc"

    def test_dirs_are_sorted_and_depth_limited(self, tmp_path: Path) -> None:
        for rel in ("src/zeta/inner/deep", "src/alpha"):
            (tmp_path / rel).mkdir(parents=True)
        structure = detect_architecture(tmp_path)
        assert structure.dirs == ("alpha", "zeta", "zeta/inner")
        assert structure.top_level == ("alpha", "zeta")

    def test_skips_node_modules_and_hidden(self, tmp_path: Path) -> None:
        for rel in ("node_modules/x", ".cache", "lib"):
            (tmp_path / rel).mkdir(parents=True)
        scan = scan_project(tmp_path)
        assert scan.root_dirs == ("lib",)

    def test_language(self, tmp_path: Path) -> None:
        write_tree(tmp_path, {"src/types/global.d.ts": "", "src/index.js": ""})
        assert detect_language(tmp_path) == "javascript"
        write_tree(tmp_path, {"src/deep/nested/util.ts": ""})
        assert detect_language(tmp_path) == "typescript"

    def test_monorepo_from_workspaces(self, make_project: Callable[..., Path]) -> None:
        root = make_project(extra={"workspaces": ["packages/*"]})
        assert scan_project(root).is_monorepo is True

    def test_monorepo_from_marker(self, make_project: Callable[..., Path]) -> None:
        root = make_project(files={"turbo.json": "{}"})
        assert scan_project(root).is_monorepo is True


# ---------------------------------------------------------------------------
# Tests and docs
# ---------------------------------------------------------------------------


class TestTestDetection:
    def test_counts_and_coverage(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            dev_dependencies={"vitest": "^1", "@playwright/test": "^1"},
            files={
                "vitest.config.ts": "",
                "src/a.ts": "",
                "src/b.ts": "",
                "src/__tests__/a.test.ts": "",
                "tests/b.spec.ts": "",
            },
        )
        tests = scan_project(root).tests
        assert tests.framework == "vitest"
        assert tests.e2e_framework == "playwright"
        assert tests.has_config is True
        assert tests.test_files == 2
        assert set(tests.test_dirs) == {"__tests__", "tests"}
        assert tests.estimated_coverage == "high"

    def test_no_tests(self, make_project: Callable[..., Path]) -> None:
        tests = scan_project(make_project(files={"src/a.js": ""})).tests
        assert tests.framework == "none"
        assert tests.test_files == 0
        assert tests.estimated_coverage == "none"

    @pytest.mark.parametrize(
        ("test_files", "source_files", "expected"),
        [(0, 10, "none"), (3, 0, "low"), (1, 10, "low"), (2, 10, "medium"), (5, 10, "high")],
    )
    def test_estimate_coverage(self, test_files: int, source_files: int, expected: str) -> None:
        assert estimate_coverage(test_files, source_files) == expected


class TestExistingDocs:
    def test_openapi_and_prisma(self, make_project: Callable[..., Path]) -> None:
        root = make_project(
            files={
                "docs/openapi.yaml": "openapi: 3.0.0\n",
                "prisma/schema.prisma": "",
                "README.md": "# hi\n",
                ".env.sample": "",
            },
        )
        docs = scan_project(root).existing_docs
        assert docs.has_openapi is True
        assert docs.openapi_path == "docs/openapi.yaml"
        assert docs.has_prisma_schema is True
        assert docs.prisma_schema_path == "prisma/schema.prisma"
        assert docs.has_readme is True
        assert docs.has_env_example is True

    def test_root_candidate_preferred(self, make_project: Callable[..., Path]) -> None:
        root = make_project(files={"swagger.json": "{}", "docs/openapi.yaml": ""})
        assert scan_project(root).existing_docs.openapi_path == "swagger.json"


# ---------------------------------------------------------------------------
# scan_project
# ---------------------------------------------------------------------------


class TestScanProject:
    def test_idempotent(self, express_prisma_project: Path) -> None:
        first = scan_project(express_prisma_project)
        second = scan_project(express_prisma_project)
        assert first == second
        assert json.dumps(first.to_dict()) == json.dumps(second.to_dict())

    def test_full_scan(self, express_prisma_project: Path) -> None:
        scan = scan_project(express_prisma_project)
        assert scan.project_name == "shop-api"
        assert scan.description == "Online shop backend"
        assert scan.language == "typescript"
        assert scan.backend.port == 4000
        assert scan.src_structure.pattern == "mvc"
        assert scan.src_root_name == "src"
        assert scan.tests.framework == "jest"

    def test_git_branch(self, make_project: Callable[..., Path]) -> None:
        root = make_project(files={".git/HEAD": "ref: refs/heads/develop\n"})
        scan = scan_project(root)
        assert scan.has_git is True
        assert scan.git_branch == "develop"

    def test_defaults_without_git(self, make_project: Callable[..., Path]) -> None:
        scan = scan_project(make_project())
        assert scan.has_git is False
        assert scan.git_branch == "main"

    def test_malformed_package_json(self, tmp_path: Path) -> None:
        project = tmp_path / "broken-app"
        project.mkdir()
        (project / "package.json").write_text("{not json", encoding="utf-8")
        scan = scan_project(project)
        assert scan.project_name == "broken-app"
        assert scan.backend.detected is False

    def test_non_object_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("[1, 2]", encoding="utf-8")
        assert scan_project(tmp_path).frontend.detected is False

    def test_to_dict_camel_case(self, express_prisma_project: Path) -> None:
        data = scan_project(express_prisma_project).to_dict()
        assert data["projectName"] == "shop-api"
        assert data["backend"]["orm"] == "Prisma"
        assert data["srcStructure"]["pattern"] == "mvc"
        assert data["existingDocs"]["hasPrismaSchema"] is True
        assert "hasOpenAPI" in data["existingDocs"]
        assert data["tests"]["estimatedCoverage"] == "none"
