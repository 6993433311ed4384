#!/usr/bin/env python3
"""Turn a spoken cooking narration into a structured recipe.

Examples:
  voice-recipe "Boil water. Steep the tea for three minutes."
  voice-recipe --audio data/narration.m4a --json
  voice-recipe            # interactive: prompts until you answer "no"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Callable

from voice_recipe.core.config import Settings, get_settings, require_api_token
from voice_recipe.core.errors import MissingCredentialsError
from voice_recipe.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from voice_recipe.schemas.recipes import RecipeRecord
from voice_recipe.services.generator import RecipeGenerator

BANNER = "=" * 49
SAMPLE_NARRATION = (
    "To make a perfect roast beef, start by preheating your oven to 375 degrees Fahrenheit. "
    "You'll need a 3-pound beef roast, preferably a ribeye or sirloin cut. "
    "Season it generously with 2 tablespoons of kosher salt, 1 tablespoon of black pepper, "
    "3 cloves of minced garlic, and 1 tablespoon of fresh rosemary. "
    "Let it come to room temperature for about 30 minutes. "
    "Heat 2 tablespoons of olive oil in a large oven-safe skillet over high heat. "
    "Sear the beef on all sides until nicely browned, about 3 minutes per side. "
    "Transfer the skillet to the oven and roast for about 45 minutes for medium-rare. "
    "Remove from the oven, cover loosely with foil, and let rest for 15 minutes before slicing thinly against the grain."
)


def render_recipe(recipe: RecipeRecord) -> str:
    lines = ["", BANNER, recipe.title.upper(), BANNER, "", "INGREDIENTS:"]
    lines.extend(f"   {index}. {ingredient}" for index, ingredient in enumerate(recipe.ingredients, start=1))
    lines.extend(["", "INSTRUCTIONS:"])
    lines.extend(f"   {index}. {step}" for index, step in enumerate(recipe.steps, start=1))
    lines.extend(["", BANNER, ""])
    return "\n".join(lines)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voice-recipe", description="Convert a cooking narration into a recipe.")
    parser.add_argument("text", nargs="?", help="Narration text; prompted for when omitted")
    parser.add_argument("--audio", type=Path, help="Audio file to transcribe before generating the recipe")
    parser.add_argument("--json", action="store_true", help="Print the recipe as JSON instead of the text layout")
    parser.add_argument("--once", action="store_true", help="Do not offer to generate another recipe")
    return parser.parse_args(argv)


async def run(
    args: argparse.Namespace,
    generator: RecipeGenerator,
    *,
    prompt: Callable[[str], str] = input,
) -> None:
    single_shot = args.once or bool(args.text) or args.audio is not None
    text: str = args.text or ""
    audio_path: Path | None = args.audio

    while True:
        if not text and audio_path is None:
            text = _ask(prompt, "Enter your recipe request: ")
            if not text:
                text = SAMPLE_NARRATION
        if not args.json:
            print(f'Processing request: "{text}"' if text else f"Processing audio: {audio_path}")

        recipe = await generator.generate(text, audio_path=audio_path)
        if args.json:
            print(json.dumps(recipe.model_dump(mode="json"), ensure_ascii=False, indent=2))
        else:
            print(render_recipe(recipe))

        if single_shot:
            return
        if _ask(prompt, "Would you like to try another recipe? (yes/no): ").lower() not in {"y", "yes"}:
            print("Thank you for using the recipe generator!")
            return
        text, audio_path = "", None


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings: Settings = get_settings()
    configure_logging(logging.WARNING if args.json else logging.INFO, correlate=settings.otel_log_correlation)

    try:
        require_api_token(settings)
    except MissingCredentialsError as exc:
        print(f"No API token: {exc}")
        return 1

    telemetry_runtime = setup_telemetry(settings)
    try:
        generator = RecipeGenerator(settings, on_progress=None if args.json else _print_progress)
        asyncio.run(run(args, generator))
    except KeyboardInterrupt:
        return 130
    finally:
        shutdown_telemetry(telemetry_runtime)
    return 0


def _print_progress(attempt: int, total: int) -> None:
    print(f"Waiting for recipe... (Attempt {attempt}/{total})")


def _ask(prompt: Callable[[str], str], question: str) -> str:
    try:
        return prompt(question).strip()
    except EOFError:
        return ""


if __name__ == "__main__":
    raise SystemExit(main())
