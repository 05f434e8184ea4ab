"""
Tests for edit_prompts.py - instruction builders and output cleanup.
"""

import pytest

from edit_prompts import (
    BASE_OUTPUT_RULES,
    DEFAULT_CUSTOM_INSTRUCTION,
    EditLevel,
    build_instruction,
    build_polish_prompt,
    build_review_prompt,
    build_system_prompt,
    clean_model_output,
)


class TestBuildInstruction:
    """Tests for build_instruction()."""

    @pytest.mark.parametrize("level", ["proofread", "rewrite", "formal"])
    def test_presets_end_with_output_rules(self, level):
        instruction = build_instruction(level)
        assert instruction.endswith(BASE_OUTPUT_RULES)

    def test_proofread_limits_scope(self):
        assert "ONLY spelling" in build_instruction(EditLevel.PROOFREAD)

    def test_custom_uses_caller_text(self):
        instruction = build_instruction("custom", "  Make it sound like a pirate.  ")
        assert instruction.startswith("Make it sound like a pirate. ")
        assert instruction.endswith(BASE_OUTPUT_RULES)

    def test_blank_custom_falls_back_to_default(self):
        assert build_instruction("custom", "   ").startswith(DEFAULT_CUSTOM_INSTRUCTION)

    def test_unknown_level_raises(self):
        with pytest.raises(ValueError):
            build_instruction("shout")


class TestPromptTemplates:
    def test_system_prompt_embeds_instruction(self):
        prompt = build_system_prompt("  Fix commas.  ")
        assert "--- START INSTRUCTION ---\nFix commas.\n--- END INSTRUCTION ---" in prompt

    def test_review_prompt_carries_original_and_current(self):
        prompt = build_review_prompt("orig text", "edit text", "Fix commas.")
        assert "--- START ORIGINAL TEXT ---\norig text\n" in prompt
        assert "--- START CURRENT EDIT ---\nedit text\n" in prompt

    def test_polish_prompt_carries_text_to_polish(self):
        prompt = build_polish_prompt("orig text", "reviewed text", "Fix commas.")
        assert "--- START TEXT TO POLISH ---\nreviewed text\n" in prompt


class TestCleanModelOutput:
    """Tests for clean_model_output()."""

    @pytest.mark.parametrize("candidate", [None, "", "   "])
    def test_empty_candidates(self, candidate):
        assert clean_model_output(candidate) == ""

    @pytest.mark.parametrize(
        "candidate",
        [
            "Here is the edited text: The cat sat.",
            "Here's the revised version:\nThe cat sat.",
            "Edited text: The cat sat.",
            "Sure! Here's the polished text:\nThe cat sat.",
        ],
    )
    def test_leading_phrases_removed(self, candidate):
        assert clean_model_output(candidate) == "The cat sat."

    @pytest.mark.parametrize(
        "candidate",
        [
            "Of course!\nShe laughed and walked away.",
            "Sure.\nHe nodded, and the door closed behind him.",
            "Certainly, sir: the carriage is ready.",
        ],
    )
    def test_courtesy_words_in_prose_are_kept(self, candidate):
        """
        Given: Text whose first line merely starts with "Sure" or "Of course"
        Then: Nothing is stripped when the model echoes it back
        """
        assert clean_model_output(candidate, source=candidate) == candidate

    def test_courtesy_words_kept_without_here_is_tail(self):
        assert clean_model_output("Of course!\nShe left.", source="of course\nshe left") == "Of course!\nShe left."

    def test_leading_phrase_kept_when_source_opens_with_it(self):
        source = "Edited text: a memo from the copy desk."
        assert clean_model_output(source, source=source) == source

    def test_code_fence_removed(self):
        assert clean_model_output("```text\nThe cat sat.\n```") == "The cat sat."

    def test_wrapping_quotes_removed_when_source_unquoted(self):
        assert clean_model_output('"The cat sat."', source="the cat sat") == "The cat sat."

    def test_wrapping_quotes_kept_when_source_quoted(self):
        """
        Given: A line of dialogue that was already quoted in the source
        Then: The edited dialogue keeps its quotation marks
        """
        assert clean_model_output("“Come here.”", source="“come here”") == "“Come here.”"

    def test_inner_dialogue_quotes_are_preserved(self):
        candidate = '"Stop," she said. "Now."'
        assert clean_model_output(candidate, source="stop she said now") == candidate

    def test_plain_text_untouched(self):
        assert clean_model_output("  The cat sat.\n") == "The cat sat."
