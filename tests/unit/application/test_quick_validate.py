"""Tests for quick_validate."""

from src.application.agent.validation import quick_validate


class TestQuickValidate:
    """Tests for the structural lint."""

    def test_balanced_call(self):
        """A well-formed call has no issues."""
        result = quick_validate('<tool_call><name>a</name><params>{"x": 1}</params></tool_call>')
        assert result.has_tools
        assert result.tool_count == 1
        assert result.issues == []

    def test_plain_text(self):
        """Text without markers has no tools."""
        result = quick_validate("nothing to see here")
        assert not result.has_tools
        assert result.tool_count == 0
        assert result.issues == []

    def test_mismatched_tags(self):
        """Unclosed calls are flagged and not counted."""
        result = quick_validate("<tool_call><name>a</name><params>{}</params>")
        assert result.tool_count == 0
        assert "Mismatched tool_call tags: 1 opening, 0 closing" in result.issues

    def test_single_quotes_flagged(self):
        """Single-quote-only params are flagged."""
        result = quick_validate("<tool_call><name>a</name><params>{'x': 'y'}</params></tool_call>")
        assert "Params use single quotes instead of double quotes" in result.issues

    def test_trailing_comma_flagged(self):
        """Trailing commas in params are flagged."""
        result = quick_validate('<tool_call><name>a</name><params>{"x": 1,}</params></tool_call>')
        assert "Params contain trailing commas" in result.issues

    def test_counts_all_envelopes(self):
        """Inline and legacy envelopes are counted too."""
        text = '<tool:a>{"x": 1}</tool:a>\n[TOOL:b]\n```json\n{}\n```\n[/TOOL]'
        result = quick_validate(text)
        assert result.tool_count == 2
        assert result.issues == []

    def test_legacy_body_linted(self):
        """Legacy bodies get the same quote and comma checks."""
        text = "[TOOL:a]\n```json\n{'x': 'y'}\n```\n[/TOOL]\n[TOOL:b]\n```\n{\"x\": 1,}\n```\n[/TOOL]"
        result = quick_validate(text)
        assert result.tool_count == 2
        assert result.issues == [
            "Params use single quotes instead of double quotes",
            "Params contain trailing commas",
        ]

    def test_inline_body_linted(self):
        result = quick_validate("<tool:a>{'x': 'y'}</tool:a>")
        assert result.issues == ["Params use single quotes instead of double quotes"]
