from __future__ import annotations

import time
import unittest

from recipe_extract.core.config import Config
from recipe_extract.stages.normalizer import (
    VULGAR_FRACTIONS,
    Normalizer,
    RepairPass,
    collapse_whitespace,
    normalize,
    normalize_line_endings,
    normalize_temperatures,
    repair_comma_decimal,
    repair_cooking_terms,
    repair_fractions,
    repair_measurements,
    repair_numbered_steps,
    repair_recipe_structure,
    repair_section_headers,
)


OCR_CARD = (
    "Chocolate Chip Cookies\r\n"
    "lngredients\r\n"
    "- 2cupsflour\r\n"
    "- l/2 tsp salt\r\n"
    "- 1 c. sugar\r\n"
    "D1rections\r\n"
    "Step 1: PreHeat oven to 350 degrees F. Step 2: Mix in a bOwl."
)


class RepairPassTests(unittest.TestCase):
    def test_line_endings(self) -> None:
        self.assertEqual(normalize_line_endings("a\r\nb\rc\n"), "a\nb\nc\n")

    def test_whitespace_collapse(self) -> None:
        raw = "  a \t b\u00a0c \n\n\n\n d\u200b "
        self.assertEqual(collapse_whitespace(raw), "a b c\n\nd")

    def test_whitespace_strips_control_characters(self) -> None:
        self.assertEqual(collapse_whitespace("\ufeffPan\x00cakes\x07"), "Pancakes")

    def test_glued_unit_is_split_from_word(self) -> None:
        self.assertEqual(repair_recipe_structure("- 2cupsflour"), "- 2cups flour")

    def test_merged_ingredient_lines_are_split(self) -> None:
        self.assertEqual(repair_recipe_structure("1 cup flour.2 eggs"), "1 cup flour.\n2 eggs")

    def test_structure_pass_needs_an_ingredient_pattern(self) -> None:
        self.assertEqual(repair_recipe_structure("The end.2 people"), "The end.2 people")

    def test_inline_numbered_step_moves_to_own_line(self) -> None:
        self.assertEqual(repair_numbered_steps("Mix well. 2. Bake it."), "Mix well.\n\n2. Bake it.")

    def test_glued_numbered_steps_are_split(self) -> None:
        self.assertEqual(repair_numbered_steps("1. Mix.2. Bake."), "1. Mix.\n\n2. Bake.")
        self.assertEqual(repair_numbered_steps("1. Mix.2.Bake."), "1. Mix.\n\n2. Bake.")
        self.assertEqual(repair_numbered_steps("Use 1.5 cups"), "Use 1.5 cups")

    def test_step_word_prefixes_are_canonicalized(self) -> None:
        self.assertEqual(repair_numbered_steps("Step 1: Mix\nStep 2 - Bake"), "1. Mix\n\n2. Bake")
        self.assertEqual(repair_numbered_steps("1) Mix"), "1. Mix")

    def test_ocr_fraction_confusions(self) -> None:
        self.assertEqual(repair_fractions("l/2 cup and I/4 tsp and |/3 oz"), "1/2 cup and 1/4 tsp and 1/3 oz")

    def test_fraction_glyphs(self) -> None:
        self.assertEqual(repair_fractions("1½ cups"), "1 1/2 cups")
        self.assertEqual(repair_fractions("¾ cup"), "3/4 cup")
        self.assertEqual(repair_fractions("1⁄2 tsp"), "1/2 tsp")

    def test_comma_decimal(self) -> None:
        self.assertEqual(repair_comma_decimal("1,5 kg"), "1.5 kg")
        # thousands separators are misread as decimals
        self.assertEqual(repair_comma_decimal("1,000 g"), "1.000 g")

    def test_ocr_unit_tokens(self) -> None:
        self.assertEqual(repair_measurements("2 cup5 sugar"), "2 cups sugar")
        self.assertEqual(repair_measurements("1 tb5p oil"), "1 tbsp oil")
        self.assertEqual(repair_measurements("1 t5p salt"), "1 tsp salt")
        self.assertEqual(repair_measurements("8 0z cheese"), "8 oz cheese")

    def test_unit_spacing(self) -> None:
        self.assertEqual(repair_measurements("2cups"), "2 cups")
        self.assertEqual(repair_measurements("250g flour"), "250 g flour")
        self.assertEqual(repair_measurements("1/2tsp"), "1/2 tsp")

    def test_single_letter_abbreviations(self) -> None:
        self.assertEqual(normalize("- 1 c. flour"), "- 1 cup flour")
        self.assertEqual(normalize("- 2 T. butter"), "- 2 tbsp butter")
        self.assertEqual(normalize("- 1 t. salt"), "- 1 tsp salt")

    def test_section_headers(self) -> None:
        text = "lngredients:\n- 1 egg\nD1rections\n1. Beat."
        self.assertEqual(
            repair_section_headers(text),
            "Ingredients:\n- 1 egg\n\nDirections:\n1. Beat."
        )

    def test_correct_header_words_are_untouched(self) -> None:
        text = "Ingredients:\n- 1 egg\n\nDirections:\n1. Beat."
        self.assertEqual(repair_section_headers(text), text)

    def test_cooking_term_casing(self) -> None:
        text = "PreHeat the oven. Stir in a bOwl. MIX well. Mixture"
        self.assertEqual(
            repair_cooking_terms(text),
            "Preheat the oven. Stir in a bowl. MIX well. Mixture"
        )

    def test_temperatures(self) -> None:
        self.assertEqual(normalize_temperatures("Bake at 350F."), "Bake at 350°F.")
        self.assertEqual(normalize_temperatures("Heat to 350 degrees F"), "Heat to 350°F")
        self.assertEqual(normalize_temperatures("Heat to 180 degrees celsius"), "Heat to 180°C")
        self.assertEqual(normalize_temperatures("Bake at 350oF"), "Bake at 350°F")
        self.assertEqual(normalize_temperatures("Bake at 350 ° F"), "Bake at 350°F")

    def test_short_capital_c_quantities_keep_their_cups(self) -> None:
        self.assertEqual(normalize_temperatures("1 C. flour"), "1 C. flour")
        self.assertEqual(normalize_temperatures("Add 12 C. water"), "Add 12 C. water")
        self.assertEqual(normalize_temperatures("Bake at 180C."), "Bake at 180°C.")


class NormalizerTests(unittest.TestCase):
    def test_empty_and_none(self) -> None:
        self.assertEqual(normalize(""), "")
        self.assertEqual(normalize(None), "")

    def test_non_string_input_is_coerced(self) -> None:
        self.assertEqual(normalize(b"Title:  Tea\r\n"), "Title: Tea")
        self.assertEqual(normalize(42), "42")

    def test_ocr_recipe_card(self) -> None:
        self.assertEqual(
            normalize(OCR_CARD),
            "Chocolate Chip Cookies\n\n"
            "Ingredients:\n"
            "- 2 cups flour\n"
            "- 1/2 tsp salt\n"
            "- 1 cup sugar\n\n"
            "Directions:\n\n"
            "1. Preheat oven to 350°F.\n\n"
            "2. Mix in a bowl."
        )

    def test_idempotence(self) -> None:
        samples = [
            OCR_CARD,
            "Ingredients:\n- 1 cup flour\n- l/2 cup water\nInstructions:\n1. Mix.\n2. Bake.",
            "We went to the market today. It was lovely!",
            "½cupflour and 1,5 kg of 1¾ cups. Step 3) bOwl 350oF.",
            "Title: Tea\n\nIngredients:\n- 1 tea bag\n\nInstructions:\n\n1. Steep.",
            "\n\n\n   \t\n",
        ]
        for sample in samples:
            with self.subTest(sample=sample):
                once = normalize(sample)
                self.assertEqual(normalize(once), once)

    def test_clean_text_is_unchanged(self) -> None:
        clean = "Title: Tea\n\nIngredients:\n- 1 tea bag\n\nInstructions:\n\n1. Steep."
        self.assertEqual(normalize(clean), clean)

    def test_every_fraction_glyph_becomes_ascii(self) -> None:
        for glyph, ascii_form in VULGAR_FRACTIONS.items():
            with self.subTest(glyph=glyph):
                result = normalize("1 " + glyph + " cups")
                self.assertIn(ascii_form, result)
                self.assertNotIn(glyph, result)

    def test_pathological_input_returns_quickly(self) -> None:
        samples = [
            "(((((((((([[[[[[[{{{{{{" * 2000,
            ".!?" * 20000 + "1." * 5000,
            "1" * 50000 + "cups" * 5000,
            "- " * 30000 + "l/" * 10000,
        ]
        for sample in samples:
            start = time.monotonic()
            result = normalize(sample)
            self.assertIsInstance(result, str)
            self.assertLess(time.monotonic() - start, 10.0)

    def test_raising_pass_falls_back_to_whitespace_cleanup(self) -> None:
        def explode(text: str) -> str:
            raise RuntimeError("boom")

        normalizer = Normalizer()
        normalizer.passes.insert(2, RepairPass("explode", explode))
        diagnostics = []

        result = normalizer.normalize("l/2 cup\r\n\r\n\r\n\r\nwater  here", diagnostics)

        self.assertEqual(result, "l/2 cup\n\nwater here")
        self.assertEqual(len(diagnostics), 1)
        self.assertEqual(diagnostics[0].stage, "normalizer")
        self.assertEqual(diagnostics[0].kind, "pass_failed")
        self.assertEqual(diagnostics[0].detail["pass"], "explode")

    def test_disabled_pass_is_skipped(self) -> None:
        config = Config.from_dict({"normalization": {"comma_decimal": False}})
        self.assertEqual(Normalizer(config).normalize("1,5 kg"), "1,5 kg")
        self.assertEqual(Normalizer().normalize("1,5 kg"), "1.5 kg")


if __name__ == "__main__":
    unittest.main()
