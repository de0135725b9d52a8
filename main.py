#!/usr/bin/env python3
"""
Recipe extraction - command line entry point

Usage:
    python main.py recipe.txt                 # typed text file
    python main.py card.jpg                   # photo of a recipe card (OCR)
    python main.py cookbook.pdf               # PDF, OCR fallback for scans
    python main.py --text "Ingredients: ..."  # inline text
    python main.py recipe.pdf --ocr http      # use the HTTP OCR endpoint

Exit codes: 0 valid record, 2 incomplete record, 1 error, 130 interrupted
"""
import argparse
import asyncio
import sys
from pathlib import Path


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Extract a structured recipe from typed text, images or PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py data/pancakes.txt
  python main.py data/card.png --log-level DEBUG
  python main.py --text "Title: Tea\\nIngredients:\\n- 1 tea bag\\nInstructions:\\n1. Steep."
        """
    )

    parser.add_argument(
        "input",
        nargs="?",
        type=str,
        help="Text, image or PDF file"
    )

    parser.add_argument(
        "--text", "-t",
        type=str,
        help="Recipe text given inline instead of a file"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default="config/pipeline.yaml",
        help="Config file path (default: config/pipeline.yaml, built-in defaults when missing)"
    )

    parser.add_argument(
        "--ocr",
        type=str,
        choices=["tesseract", "http"],
        help="OCR provider (overrides the config file)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (overrides the config file)"
    )

    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indent (default: 2)"
    )

    args = parser.parse_args(argv)
    if not args.input and args.text is None:
        parser.error("either an input file or --text is required")
    return args


def load_config(args):
    """Build the configuration from the config file and CLI overrides"""
    from recipe_extract.core.config import Config

    script_dir = Path(__file__).parent.resolve()
    config_path = Path(args.config)
    if not config_path.is_absolute():
        config_path = script_dir / config_path

    config = Config.load(str(config_path)) if config_path.exists() else Config()

    if args.ocr:
        config.acquisition.ocr_provider = args.ocr
    if args.log_level:
        config.runtime.log_level = args.log_level

    return config


def main(argv=None):
    """Main function"""
    args = parse_args(argv)

    from recipe_extract.core.utils import setup_logger
    from recipe_extract.pipeline import RecipePipeline
    from recipe_extract.stages.acquirer import AcquisitionError

    try:
        config = load_config(args)
    except Exception as e:
        print(f"Error: failed to load config: {e}", file=sys.stderr)
        return 1

    errors = config.validate()
    if errors:
        print("Config validation failed:", file=sys.stderr)
        for error in errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    setup_logger("recipe_extract", config.runtime.log_level)
    pipeline = RecipePipeline(config)

    try:
        if args.text is not None:
            text = args.text.replace("\\n", "\n")
            result = asyncio.run(pipeline.extract_text(text, origin="cli"))
        else:
            result = asyncio.run(pipeline.extract_path(args.input))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except AcquisitionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(result.to_json(indent=args.indent))
    return 0 if result.valid else 2


if __name__ == "__main__":
    sys.exit(main())
