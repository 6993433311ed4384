from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
import json
import logging
import re
from typing import Any

from voice_recipe.core.errors import MalformedOutput
from voice_recipe.parsing.repair import repair_json_text
from voice_recipe.schemas.recipes import INGREDIENTS_PLACEHOLDER, UNTITLED_RECIPE, RecipeRecord

logger = logging.getLogger(__name__)

_H1_RE = re.compile(r"^#\s")
_HEADING_MARKER_RE = re.compile(r"^#+\s*")
_TITLE_PREFIX_RE = re.compile(r"""^["']?title["']?\s*[:=]?\s*""", re.IGNORECASE)
_ITEM_MARKER_RE = re.compile(r"^(?:[-*•]\s*|\d+[.)](?:\s+|$))")
_HAS_WORD_RE = re.compile(r"\w")


def extract_recipe(fragments: Iterable[Any], *, now: datetime | None = None) -> RecipeRecord:
    """Build a recipe from raw job output, degrading instead of failing.

    Tries a strict JSON parse of the first-``{``-to-last-``}`` span, then the
    same span after :func:`repair_json_text`, then a line-by-line section
    scanner over the whole text.
    """
    created_at = now or datetime.now(timezone.utc)
    text = _unwrap_fragment_array("".join(str(fragment) for fragment in fragments if fragment is not None))

    try:
        span = json_object_span(text)
    except MalformedOutput:
        logger.info("no JSON object in model output; using line heuristics")
        return heuristic_recipe(text, now=created_at)

    try:
        return _record_from_object(_load_object(span), created_at)
    except MalformedOutput as exc:
        logger.warning("could not parse JSON directly (%s); trying repaired text", exc)

    try:
        return _record_from_object(_load_object(repair_json_text(span)), created_at)
    except MalformedOutput as exc:
        logger.warning("repaired JSON still invalid (%s); using line heuristics", exc)

    return heuristic_recipe(text, now=created_at)


def json_object_span(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise MalformedOutput("no JSON object found")
    return text[start : end + 1]


def heuristic_recipe(text: str, *, now: datetime | None = None) -> RecipeRecord:
    title = UNTITLED_RECIPE
    sections: dict[str, list[str]] = {"ingredients": [], "steps": []}
    current: str | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        lowered = line.lower()
        if "title" in lowered or _H1_RE.match(line):
            title = _clean_title(line) or title
        elif "ingredient" in lowered:
            current = "ingredients"
        elif "instruction" in lowered or "step" in lowered:
            current = "steps"
        elif current is not None and not line.startswith("#"):
            item = _clean_item(line)
            if item:
                sections[current].append(item)

    return _build_record(title, sections["ingredients"], sections["steps"], now or datetime.now(timezone.utc))


def minimal_fallback(text: str, *, now: datetime | None = None) -> RecipeRecord:
    created_at = now or datetime.now(timezone.utc)
    steps = [segment.strip() for segment in text.split(". ") if segment.strip()]
    title = f"Recipe {created_at.astimezone().strftime('%H:%M:%S')}"
    return _build_record(title, [INGREDIENTS_PLACEHOLDER], steps, created_at)


def _unwrap_fragment_array(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("["):
        return text
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return text
    if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
        return "".join(parsed)
    return text


def _load_object(span: str) -> dict[str, Any]:
    try:
        parsed = json.loads(span)
    except ValueError as exc:
        raise MalformedOutput(str(exc)) from exc
    if not isinstance(parsed, dict):
        raise MalformedOutput(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _record_from_object(data: dict[str, Any], created_at: datetime) -> RecipeRecord:
    title = data.get("title")
    steps = _as_lines(data.get("steps")) or _as_lines(data.get("instructions"))
    return _build_record(
        title.strip() if isinstance(title, str) else UNTITLED_RECIPE,
        _as_lines(data.get("ingredients")),
        steps,
        created_at,
    )


def _build_record(title: str, ingredients: list[str], steps: list[str], created_at: datetime) -> RecipeRecord:
    # Empty title and sections are replaced with placeholders by the model validators.
    return RecipeRecord(
        id=str(int(created_at.timestamp() * 1000)),
        title=title,
        ingredients=ingredients,
        steps=steps,
        created_at=created_at,
    )


def _as_lines(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    lines: list[str] = []
    for item in value:
        if isinstance(item, dict):
            text = " ".join(str(part).strip() for part in item.values() if part is not None and str(part).strip())
        elif item is None:
            continue
        else:
            text = str(item).strip()
        if text:
            lines.append(text)
    return lines


def _clean_title(line: str) -> str:
    title = _TITLE_PREFIX_RE.sub("", _HEADING_MARKER_RE.sub("", line))
    return title.strip().rstrip(",").strip().strip("\"'").strip()


def _clean_item(line: str) -> str:
    item = line.rstrip(",").strip().strip("\"'").strip()
    item = _ITEM_MARKER_RE.sub("", item).strip()
    if not _HAS_WORD_RE.search(item):
        return ""
    return item
