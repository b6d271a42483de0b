"""Tests for factsets.freshness.categories: URI and tag classification."""

import pytest

from factsets.freshness.categories import (
    CATEGORY_RULES,
    CategoryRule,
    Exclusion,
    FreshnessCategory,
    classify,
    matching_categories,
    tag_categories,
)

FC = FreshnessCategory


# ---------------------------------------------------------------------------
# URI classification
# ---------------------------------------------------------------------------


class TestClassifyByUri:
    @pytest.mark.parametrize(
        "uri, expected",
        [
            ("src/app.ts", FC.source_code),
            ("lib/server.py", FC.source_code),
            ("yarn.lock", FC.lock_files),
            ("poetry.lock", FC.lock_files),
            ("db/migrations/001_init.sql", FC.database),
            ("prisma/schema.prisma", FC.database),
            ("tests/test_app.py", FC.tests),
            ("src/app.spec.ts", FC.tests),
            ("Dockerfile", FC.infrastructure),
            (".github/workflows/ci.yml", FC.infrastructure),
            ("api/schema.graphql", FC.api_schemas),
            ("scripts/deploy.sh", FC.scripts),
            ("dist/app.min.js", FC.generated_files),
            ("logo.png", FC.assets),
            ("README.md", FC.documentation),
            ("package.json", FC.config_files),
            ("pyproject.toml", FC.config_files),
            ("data.xyz", FC.default),
        ],
    )
    def test_category(self, uri, expected):
        assert classify(uri) == expected

    def test_case_insensitive(self):
        assert classify("SRC/APP.TS") == FC.source_code
        assert classify("Yarn.Lock") == FC.lock_files

    def test_lock_before_config(self):
        """package-lock.json also contains 'package' but lockFiles comes first."""
        assert classify("package-lock.json") == FC.lock_files

    def test_database_excludes_test_fixtures(self):
        assert classify("src/__fixtures__/seed.sql") == FC.tests

    def test_api_schema_excludes_prisma(self):
        assert classify("prisma/schema.graphql") != FC.api_schemas

    def test_empty_uri_is_default(self):
        assert classify("") == FC.default


# ---------------------------------------------------------------------------
# Tag vetoes
# ---------------------------------------------------------------------------


class TestTagVeto:
    def test_generated_tag_vetoes_source_code(self):
        assert classify("src/app.ts", ["generated"]) == FC.default

    def test_lockfile_tag_vetoes_config(self):
        """Evaluation continues past the vetoed rule rather than restarting."""
        assert classify("package.json", ["lockfile"]) == FC.default

    def test_veto_continues_to_later_rule(self):
        # .env.ts matches configFiles (.env) and sourceCode (.ts)
        assert classify("app.env.ts") == FC.config_files
        assert classify("app.env.ts", ["lockFiles"]) == FC.source_code

    def test_unrelated_tags_ignored(self):
        assert classify("src/app.ts", ["backend", "api"]) == FC.source_code

    def test_tags_do_not_add_categories(self):
        """A tag only vetoes; it never moves a URI into the tagged category."""
        assert classify("data.xyz", ["tests"]) == FC.default

    @pytest.mark.parametrize(
        "tag", ["generated", "generatedFiles", "generated_files", "generated-files", "GENERATED"]
    )
    def test_tag_spellings(self, tag):
        assert tag_categories([tag]) == frozenset({FC.generated_files})


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


class TestRules:
    def test_every_category_but_default_has_a_rule(self):
        covered = {rule.category for rule in CATEGORY_RULES}
        assert covered == set(FC) - {FC.default}

    def test_rule_order(self):
        order = [rule.category for rule in CATEGORY_RULES]
        assert order[0] == FC.lock_files
        assert order[-1] == FC.source_code
        assert order.index(FC.config_files) < order.index(FC.source_code)

    def test_exclusion_beats_match(self):
        rule = CategoryRule(FC.scripts, ends_with=(".sh",), exclude=Exclusion(includes=("/vendor/",)))
        assert rule.matches_uri("bin/run.sh")
        assert not rule.matches_uri("lib/vendor/run.sh")

    def test_classification_is_total(self):
        """Every input yields exactly one category."""
        for uri in ["", "/", "???", "a" * 500, "src/ü.py", "x.lock.ts"]:
            assert isinstance(classify(uri), FreshnessCategory)

    def test_matching_categories_lists_all(self):
        assert matching_categories("app.env.ts") == [FC.config_files, FC.source_code]
        assert matching_categories("data.xyz") == [FC.default]


class TestParse:
    def test_accepts_value_and_name(self):
        assert FC.parse("sourceCode") is FC.source_code
        assert FC.parse("source_code") is FC.source_code

    def test_rejects_unknown(self):
        with pytest.raises(ValueError):
            FC.parse("nonsense")
