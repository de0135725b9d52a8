from __future__ import annotations

import unittest
from unittest import mock

from recipe_extract.core.config import Config
from recipe_extract.stages.parser import (
    ParseState,
    Section,
    StructuralParser,
    match_metadata,
    parse_structure,
    step,
)


class StepTests(unittest.TestCase):
    def test_header_switches_section(self) -> None:
        state = step(ParseState(), "Ingredients:")
        self.assertIs(state.section, Section.INGREDIENTS)

    def test_step_returns_new_state(self) -> None:
        initial = ParseState()
        step(initial, "Ingredients:")
        self.assertIs(initial.section, Section.NONE)

    def test_ingredients_need_bullets(self) -> None:
        state = step(ParseState(), "Ingredients:")
        state = step(state, "- 1 egg")
        state = step(state, "a stray line")
        state = step(state, "• 2 eggs")
        state = step(state, "* 3 eggs")
        self.assertEqual(state.ingredients, ("1 egg", "2 eggs", "3 eggs"))

    def test_header_remainder_is_content(self) -> None:
        state = step(ParseState(), "Ingredients: - 1 egg")
        self.assertEqual(state.ingredients, ("1 egg",))

    def test_blank_lines_do_nothing(self) -> None:
        state = step(ParseState(), "Instructions:")
        self.assertEqual(step(state, "   "), state)

    def test_no_transition_back_to_none(self) -> None:
        state = step(ParseState(), "Notes:")
        state = step(state, "Anything at all")
        self.assertIs(state.section, Section.NOTES)


class ParserTests(unittest.TestCase):
    def test_labelled_title_and_description(self) -> None:
        candidate = parse_structure(
            "Title: Pancakes\nA stray line\nDescription: Fluffy\nand light"
        )
        self.assertEqual(candidate.title, "Pancakes")
        self.assertEqual(candidate.description, "Fluffy and light")

    def test_most_recent_label_wins(self) -> None:
        self.assertEqual(parse_structure("Title: A\nTitle: B").title, "B")

    def test_title_on_line_after_label(self) -> None:
        self.assertEqual(parse_structure("Title:\nLemon Tart\nIgnored").title, "Lemon Tart")

    def test_inferred_title_and_description(self) -> None:
        candidate = parse_structure(
            "Banana Bread\nA moist loaf.\nIngredients:\n- 3 bananas\n"
            "Instructions:\n1. Mash.\n2. Bake."
        )
        self.assertEqual(candidate.title, "Banana Bread")
        self.assertEqual(candidate.description, "A moist loaf.")
        self.assertEqual(candidate.ingredients, ["3 bananas"])
        self.assertEqual(candidate.instructions, ["Mash.", "Bake."])

    def test_title_inference_can_be_disabled(self) -> None:
        config = Config.from_dict({"parsing": {"infer_title": False}})
        candidate = StructuralParser(config).parse("Banana Bread\nIngredients:\n- 3 bananas")
        self.assertEqual(candidate.title, "")
        self.assertEqual(candidate.description, "Banana Bread")

    def test_instructions_keep_encounter_order(self) -> None:
        candidate = parse_structure("Instructions:\n2. Bake.\n1. Mix.\n3. Cool.")
        self.assertEqual(candidate.instructions, ["Bake.", "Mix.", "Cool."])

    def test_decimal_is_not_a_step(self) -> None:
        candidate = parse_structure("Instructions:\n1.5 cups water\nStir well\n1. Boil.")
        self.assertEqual(candidate.instructions, ["Boil."])

    def test_header_synonyms(self) -> None:
        candidate = parse_structure(
            "You'll need:\n- 1 egg\nMethod:\n1. Crack.\nTips:\n- Use fresh eggs"
        )
        self.assertEqual(candidate.ingredients, ["1 egg"])
        self.assertEqual(candidate.instructions, ["Crack."])
        self.assertEqual(candidate.notes, ["Use fresh eggs"])

    def test_synonyms_can_be_disabled(self) -> None:
        config = Config.from_dict({"parsing": {"header_synonyms": False}})
        candidate = StructuralParser(config).parse("Title: X\nDirections:\n1. Go.")
        self.assertEqual(candidate.instructions, [])

    def test_notes_strip_markers(self) -> None:
        candidate = parse_structure("Notes:\n- Keeps 3 days\n2. Freeze it\nServe warm")
        self.assertEqual(candidate.notes, ["Keeps 3 days", "Freeze it", "Serve warm"])

    def test_metadata_lines(self) -> None:
        candidate = parse_structure(
            "Title: Stew\nPrep Time: 10 min\nServes 4\nIngredients:\n- 1 onion\nCook Time: 2 hours"
        )
        self.assertEqual(candidate.title, "Stew")
        self.assertEqual(
            candidate.metadata,
            {"prep_time": "10 min", "servings": "4", "cook_time": "2 hours"}
        )
        self.assertEqual(candidate.ingredients, ["1 onion"])

    def test_match_metadata(self) -> None:
        self.assertEqual(match_metadata("Yield: 12 muffins"), ("yield", "12 muffins"))
        self.assertEqual(match_metadata("Makes 2 loaves"), ("yield", "2 loaves"))
        self.assertIsNone(match_metadata("Makes a great gift"))

    def test_empty_input(self) -> None:
        candidate = parse_structure("")
        self.assertEqual(candidate.to_dict()["ingredients"], [])
        self.assertEqual(candidate.title, "")

    def test_internal_error_gives_empty_candidate(self) -> None:
        diagnostics = []
        with mock.patch("recipe_extract.stages.parser.step", side_effect=RuntimeError("boom")):
            candidate = parse_structure("Title: Tea\nIngredients:\n- 1 tea bag", diagnostics)
        self.assertEqual(candidate.title, "")
        self.assertEqual(candidate.ingredients, [])
        self.assertEqual([event.kind for event in diagnostics], ["parse_failed"])


if __name__ == "__main__":
    unittest.main()
