"""Tests for assistant text cleanup and plan extraction."""

from core.text import clean_assistant_text, extract_plan_from_reasoning


class TestCleanAssistantText:
    """Tests for clean_assistant_text."""

    def test_strips_think_blocks(self):
        text = "<think>pondering the question</think>\nThe answer is 4."
        assert clean_assistant_text(text) == "The answer is 4."

    def test_strips_tool_markup(self):
        text = 'Running it.\n<tool_call>{"name": "bash"}</tool_call>\n'
        assert clean_assistant_text(text) == "Running it."

    def test_plain_text_is_trimmed(self):
        assert clean_assistant_text("  hi  \n") == "hi"
        assert clean_assistant_text("") == ""


class TestExtractPlan:
    """Tests for extract_plan_from_reasoning."""

    def test_numbered_lines_win(self):
        reasoning = "Let me think.\n1. Read the config\n- a bullet\n2. Update the loader\n"
        assert extract_plan_from_reasoning(reasoning) == "1. Read the config\n2. Update the loader"

    def test_bullets_are_renumbered(self):
        reasoning = "Approach:\n- inspect tests\n* fix the bug\n"
        assert extract_plan_from_reasoning(reasoning) == "1. inspect tests\n2. fix the bug"

    def test_questions_as_last_resort(self):
        reasoning = "Unclear requirements.\nShould the cache be persistent?\nWhich backend?"
        assert extract_plan_from_reasoning(reasoning) == (
            "1. Should the cache be persistent?\n2. Which backend?"
        )

    def test_nothing_plan_like(self):
        assert extract_plan_from_reasoning("just musing") == ""

    def test_caps_numbered_steps(self):
        reasoning = "\n".join(f"{i}. step {i}" for i in range(1, 20))
        assert len(extract_plan_from_reasoning(reasoning).splitlines()) == 12
