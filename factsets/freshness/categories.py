"""Resource categorisation by URI and tags.

Each category is described by one ``CategoryRule``. Rules are tried in
declaration order against the lower-cased URI:

1. A rule matches when any ``ends_with`` suffix or any ``includes``
   substring is found and none of its ``exclude.ends_with`` /
   ``exclude.includes`` patterns are.
2. A matching rule is then vetoed if the resource carries a tag naming one
   of the categories in ``exclude.tagged``; evaluation continues with the
   next rule rather than restarting.

The first surviving match wins. Nothing matching means ``default``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class FreshnessCategory(str, Enum):
    """Semantic buckets that carry their own staleness threshold."""

    source_code = "sourceCode"
    lock_files = "lockFiles"
    config_files = "configFiles"
    documentation = "documentation"
    generated_files = "generatedFiles"
    api_schemas = "apiSchemas"
    database = "database"
    scripts = "scripts"
    tests = "tests"
    assets = "assets"
    infrastructure = "infrastructure"
    default = "default"

    @classmethod
    def parse(cls, value: str | FreshnessCategory) -> FreshnessCategory:
        """Accept either the camelCase value or the snake_case member name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[value]
        except KeyError:
            raise ValueError(f"Unknown freshness category: {value!r}") from None


@dataclass(frozen=True)
class Exclusion:
    ends_with: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    tagged: tuple[FreshnessCategory, ...] = ()


@dataclass(frozen=True)
class CategoryRule:
    category: FreshnessCategory
    ends_with: tuple[str, ...] = ()
    includes: tuple[str, ...] = ()
    exclude: Exclusion = Exclusion()

    def matches_uri(self, uri: str) -> bool:
        """URI-only match. *uri* must already be lower-cased."""
        if any(uri.endswith(s) for s in self.exclude.ends_with):
            return False
        if any(s in uri for s in self.exclude.includes):
            return False
        return any(uri.endswith(s) for s in self.ends_with) or any(
            s in uri for s in self.includes
        )

    def vetoed_by(self, tagged: frozenset[FreshnessCategory]) -> bool:
        return any(cat in tagged for cat in self.exclude.tagged)


# Order is priority: more specific categories come first.
CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        FreshnessCategory.lock_files,
        ends_with=(".lock", ".lockb"),
        includes=(
            "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb",
            "bun.lock", "gemfile.lock", "pipfile.lock", "poetry.lock",
            "cargo.lock", "go.sum", "composer.lock", "podfile.lock",
            "pubspec.lock", "mix.lock", "flake.lock", "packages.lock.json",
            "shrinkwrap.json",
        ),
    ),
    CategoryRule(
        FreshnessCategory.database,
        ends_with=(".sql", ".sqlite", ".sqlite3", ".db", ".prisma", ".dump"),
        includes=(
            "/migrations/", "/db/migrations/", "/database/migrations/",
            "/prisma/migrations/", "/drizzle/", "/seeds/", "/seeders/",
            "/fixtures/", "/sql/", "schema.prisma",
        ),
        # test fixtures belong to tests
        exclude=Exclusion(includes=("__fixtures__", "__mocks__", "/test", "/spec")),
    ),
    CategoryRule(
        FreshnessCategory.tests,
        ends_with=(
            ".test.ts", ".test.js", ".test.tsx", ".test.jsx", ".test.mjs",
            ".test.cjs", ".spec.ts", ".spec.js", ".spec.tsx", ".spec.jsx",
            ".spec.mjs", ".spec.cjs", "_test.py", "_test.go", "_test.rb",
            "_spec.rb",
        ),
        includes=(
            "test_", "/__tests__/", "/test/", "/tests/", "/spec/", "/__mocks__/",
            "/__fixtures__/", "/testdata/", "/testing/", "/fixtures/",
            "conftest.py", ".snap",
        ),
    ),
    CategoryRule(
        FreshnessCategory.infrastructure,
        ends_with=(".tf", ".tfvars", ".hcl"),
        includes=(
            "dockerfile", "docker-compose", "compose.yaml", "compose.yml",
            ".dockerignore", "/k8s/", "/kubernetes/", "/manifests/", "/charts/",
            "chart.yaml", "values.yaml", "values-", "kustomization.yaml",
            ".github/workflows/", ".gitlab-ci", ".circleci/", ".buildkite/",
            "jenkinsfile", ".travis.yml", "azure-pipelines",
            "bitbucket-pipelines", ".drone.yml", "/playbooks/", "/roles/",
            "ansible.cfg", "inventory", "/terraform/",
        ),
    ),
    CategoryRule(
        FreshnessCategory.api_schemas,
        ends_with=(
            ".graphql", ".gql", ".proto", ".thrift", ".wsdl", ".raml", ".xsd",
            ".openapi.yaml", ".openapi.json", ".swagger.yaml", ".swagger.json",
            ".asyncapi.yaml", ".asyncapi.json",
        ),
        includes=(
            "/graphql/", "/proto/", "/protos/", "/idl/", "/contracts/",
            "openapi.yaml", "openapi.json", "swagger.yaml", "swagger.json",
        ),
        exclude=Exclusion(includes=("prisma", "drizzle", "/migrations/", "/db/")),
    ),
    CategoryRule(
        FreshnessCategory.scripts,
        ends_with=(
            ".sh", ".bash", ".zsh", ".fish", ".ps1", ".psm1", ".psd1", ".bat",
            ".cmd", ".awk", ".sed", ".mk",
        ),
        includes=(
            "/scripts/", "/bin/", "/tools/", "/hack/", "/build-scripts/",
            "/devtools/", ".husky/", "makefile", "gnumakefile", "justfile",
            "taskfile", "rakefile", "jakefile",
        ),
    ),
    CategoryRule(
        FreshnessCategory.generated_files,
        ends_with=(
            ".min.js", ".min.css", ".min.html", ".bundle.js", ".bundle.css",
            ".map", ".js.map", ".css.map", ".pyc", ".pyo", ".class", ".o",
            ".obj", ".so", ".dylib", ".dll", ".pb.go", ".pb.js", ".pb.ts",
        ),
        includes=(
            "/dist/", "/build/", "/out/", "/output/", "/target/",
            "/node_modules/", "/__pycache__/", "/.pytest_cache/", "/coverage/",
            "/.next/", "/.nuxt/", "/.svelte-kit/", "/.vercel/", "/.netlify/",
            "/.gradle/", "_generated.", ".gen.", ".auto.",
        ),
    ),
    CategoryRule(
        FreshnessCategory.assets,
        ends_with=(
            ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".icns", ".webp",
            ".avif", ".bmp", ".tiff", ".tif", ".psd", ".ai", ".woff", ".woff2",
            ".ttf", ".otf", ".eot", ".mp3", ".wav", ".ogg", ".flac", ".aac",
            ".mp4", ".webm", ".mov", ".avi", ".mkv", ".pdf",
        ),
        includes=(
            "/assets/", "/images/", "/img/", "/fonts/", "/media/", "/static/",
            "/public/",
        ),
    ),
    CategoryRule(
        FreshnessCategory.documentation,
        ends_with=(".md", ".markdown", ".mdx", ".rst", ".adoc", ".asciidoc"),
        includes=(
            "/docs/", "/doc/", "/documentation/", "readme", "changelog",
            "contributing", "license", "authors", "history", "news",
        ),
    ),
    CategoryRule(
        FreshnessCategory.config_files,
        ends_with=(".toml", ".ini", ".cfg", ".conf", ".properties"),
        includes=(
            "/config/", "/configs/", "/.config/", ".env",
            # javascript / typescript
            "package.json", "tsconfig", "jsconfig", ".eslintrc", ".prettierrc",
            "biome.json", ".babelrc", "babel.config", "vite.config",
            "webpack.config", "rollup.config", "jest.config", "vitest.config",
            ".npmrc", ".yarnrc", "turbo.json", "nx.json", ".editorconfig",
            # python
            "pyproject.toml", "setup.py", "setup.cfg", "requirements.txt",
            "pipfile", "pytest.ini", "tox.ini", ".flake8", "mypy.ini",
            # ruby, go, rust
            "gemfile", ".rubocop", "go.mod", "cargo.toml", "rustfmt.toml",
            # .net, java, php
            ".csproj", ".sln", "nuget.config", "appsettings", "pom.xml",
            "build.gradle", "settings.gradle", "gradle.properties",
            "composer.json", "phpunit.xml",
        ),
        exclude=Exclusion(
            tagged=(FreshnessCategory.lock_files, FreshnessCategory.generated_files),
        ),
    ),
    CategoryRule(
        FreshnessCategory.source_code,
        ends_with=(
            ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts",
            ".py", ".pyi", ".pyx", ".pxd",
            ".rs", ".go", ".c", ".cc", ".cpp", ".cxx", ".h", ".hpp", ".hxx",
            ".java", ".kt", ".kts", ".scala", ".groovy", ".clj", ".cljs",
            ".cs", ".fs", ".vb", ".rb", ".erb", ".php", ".swift", ".m", ".mm",
            ".hs", ".ml", ".mli", ".elm", ".ex", ".exs", ".erl", ".hrl",
            ".r", ".jl", ".lua", ".pl", ".pm", ".dart", ".v", ".vh", ".sv",
            ".vhd", ".vhdl", ".nim", ".zig", ".d", ".cr", ".rkt", ".s", ".asm",
            ".vue", ".svelte", ".astro",
        ),
        exclude=Exclusion(
            tagged=(
                FreshnessCategory.tests,
                FreshnessCategory.scripts,
                FreshnessCategory.database,
                FreshnessCategory.generated_files,
            ),
        ),
    ),
)

# Extra tag spellings that name a category. The camelCase value, the
# snake_case member name and its kebab-case form are always accepted.
_TAG_ALIASES: dict[str, FreshnessCategory] = {
    "generated": FreshnessCategory.generated_files,
    "lockfile": FreshnessCategory.lock_files,
    "lock": FreshnessCategory.lock_files,
    "test": FreshnessCategory.tests,
    "script": FreshnessCategory.scripts,
    "docs": FreshnessCategory.documentation,
    "infra": FreshnessCategory.infrastructure,
    "config": FreshnessCategory.config_files,
    "asset": FreshnessCategory.assets,
}


def _build_tag_index() -> dict[str, FreshnessCategory]:
    index: dict[str, FreshnessCategory] = {}
    for cat in FreshnessCategory:
        index[cat.value.lower()] = cat
        index[cat.name] = cat
        index[cat.name.replace("_", "-")] = cat
    index.update(_TAG_ALIASES)
    return index


_TAG_INDEX = _build_tag_index()


def tag_categories(tags: Iterable[str]) -> frozenset[FreshnessCategory]:
    """Categories named by a tag set. Unrelated tags are ignored."""
    found = set()
    for tag in tags:
        cat = _TAG_INDEX.get(tag.strip().lower())
        if cat is not None:
            found.add(cat)
    return frozenset(found)


def classify(uri: str, tags: Iterable[str] = ()) -> FreshnessCategory:
    """Return the single freshness category for a resource."""
    lowered = uri.lower()
    tagged = tag_categories(tags)
    for rule in CATEGORY_RULES:
        if not rule.matches_uri(lowered):
            continue
        if rule.vetoed_by(tagged):
            logger.debug("%s: %s vetoed by tags", uri, rule.category.value)
            continue
        return rule.category
    return FreshnessCategory.default


def matching_categories(uri: str) -> list[FreshnessCategory]:
    """Every category whose URI patterns match, ignoring tag vetoes."""
    lowered = uri.lower()
    matches = [rule.category for rule in CATEGORY_RULES if rule.matches_uri(lowered)]
    return matches or [FreshnessCategory.default]
