from __future__ import annotations

import unittest
from unittest import mock

from recipe_extract.core.config import Config
from recipe_extract.stages.content_extractor import ContentExtractor, extract_content


class StartMarkerTests(unittest.TestCase):
    def test_earliest_marker_wins(self) -> None:
        text = "Some blog intro.\nPrep Time: 10 min\nIngredients:\n- 1 egg"
        self.assertEqual(extract_content(text), "Prep Time: 10 min\nIngredients:\n- 1 egg")

    def test_find_start_marker_reports_name_and_offset(self) -> None:
        text = "Chatter\nTotal Time: 1 hour\nYield: 12 servings\nIngredients:"
        self.assertEqual(ContentExtractor.find_start_marker(text), ("total_time", 8))

    def test_yield_marker_needs_servings(self) -> None:
        self.assertIsNone(ContentExtractor.find_start_marker("Yield: 2 loaves"))

    def test_markers_are_case_insensitive(self) -> None:
        self.assertEqual(ContentExtractor.find_start_marker("INGREDIENTS:"), ("ingredients", 0))


class TitleLookBackTests(unittest.TestCase):
    def test_title_like_line_above_marker_is_kept(self) -> None:
        text = (
            "My summer was long and I baked a great deal while the kids were away.\n\n"
            "Banana Bread\n\n"
            "Ingredients:\n- 3 bananas"
        )
        self.assertEqual(extract_content(text), "Banana Bread\n\nIngredients:\n- 3 bananas")

    def test_title_label_is_preferred(self) -> None:
        text = "Title: Soup\nA warming bowl\nIngredients:\n- 1 leek"
        self.assertEqual(extract_content(text), text)

    def test_metadata_lines_are_skipped(self) -> None:
        text = "Pancakes\nServes 4\nIngredients:\n- 1 egg"
        self.assertEqual(extract_content(text), text)

    def test_description_between_title_and_marker_is_skipped(self) -> None:
        text = "Rustic Sourdough\nA crusty loaf for beginners.\nIngredients:\n- 500 g flour"
        self.assertEqual(extract_content(text), text)

    def test_list_item_stops_look_back(self) -> None:
        text = "Pantry List\n1. Check the flour.\nIngredients:\n- 1 egg"
        self.assertEqual(extract_content(text), "Ingredients:\n- 1 egg")

    def test_sentence_is_not_a_title(self) -> None:
        text = "This is the best soup ever.\nIngredients:\n- 1 leek"
        self.assertEqual(extract_content(text), "Ingredients:\n- 1 leek")

    def test_look_back_can_be_disabled(self) -> None:
        config = Config.from_dict({"extraction": {"title_lookback_lines": 0}})
        text = "Banana Bread\nIngredients:\n- 3 bananas"
        self.assertEqual(ContentExtractor(config).extract(text), "Ingredients:\n- 3 bananas")


class EndMarkerTests(unittest.TestCase):
    def test_trailer_is_cut(self) -> None:
        text = (
            "Ingredients:\n- 1 egg\nInstructions:\n1. Fry.\n"
            "Nutritional Information\nCalories: 90"
        )
        self.assertEqual(extract_content(text), "Ingredients:\n- 1 egg\nInstructions:\n1. Fry.")

    def test_end_marker_before_start_is_ignored(self) -> None:
        text = "Recipe by Ann\nIngredients:\n- 1 egg\nEnjoy! See you next week"
        self.assertEqual(extract_content(text), "Ingredients:\n- 1 egg")

    def test_earliest_end_marker_wins(self) -> None:
        text = "Ingredients:\n- 1 egg\nSource: my gran\nNutrition Facts\nFat: 5 g"
        self.assertEqual(extract_content(text), "Ingredients:\n- 1 egg")


class FallbackTests(unittest.TestCase):
    def test_empty_input(self) -> None:
        self.assertEqual(extract_content(""), "")

    def test_no_start_marker_keeps_text_and_reports(self) -> None:
        diagnostics = []
        text = "Just some prose about food."
        self.assertEqual(extract_content(text, diagnostics), text)
        self.assertEqual([event.kind for event in diagnostics], ["no_start_marker"])

    def test_internal_error_returns_full_text(self) -> None:
        extractor = ContentExtractor()
        diagnostics = []
        text = "Ingredients:\n- 1 egg\nEnjoy!"
        with mock.patch.object(extractor, "_bound", side_effect=RuntimeError("boom")):
            self.assertEqual(extractor.extract(text, diagnostics), text)
        self.assertEqual(len(diagnostics), 1)
        self.assertEqual(diagnostics[0].stage, "content_extractor")
        self.assertEqual(diagnostics[0].kind, "extraction_failed")


if __name__ == "__main__":
    unittest.main()
