"""Tests for owner code templates."""

import pytest

from chimpflow.knowledge.templates import (
    BASIC_FLOW,
    CODE_TEMPLATES,
    SEARCH_FLOW,
    VALIDATION_FLOW,
    select_template,
)


class TestTemplates:
    """Test template selection."""

    @pytest.mark.parametrize("query, expected", [
        ("pocketflow search example", SEARCH_FLOW),
        ("fetch docs with pocketflow", SEARCH_FLOW),
        ("pocketflow validation", VALIDATION_FLOW),
        ("confirm facts with pocketflow", VALIDATION_FLOW),
        ("give me pocketflow code", BASIC_FLOW),
    ])
    def test_select_template(self, query, expected):
        assert select_template(query) == expected

    @pytest.mark.parametrize("name", sorted(CODE_TEMPLATES))
    def test_templates_are_valid_python(self, name):
        compile(CODE_TEMPLATES[name], f"<{name}>", "exec")

    @pytest.mark.parametrize("name", sorted(CODE_TEMPLATES))
    def test_templates_build_on_graph_package(self, name):
        assert "from chimpflow.graph import" in CODE_TEMPLATES[name]
