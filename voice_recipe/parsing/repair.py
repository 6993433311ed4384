"""Bounded textual patches for almost-JSON model output.

This is a best-effort patch, not a JSON grammar: each rule is a single regex
pass and none of them understands string boundaries, so a value that itself
contains ``, key:`` or ``', '`` can still be corrupted.
"""

from __future__ import annotations

import re

# Only a word directly after ``{`` or ``,`` counts as a key, so times such as
# "10:30" inside values are left alone.
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][\w-]*)(\s*:)")
_SINGLE_QUOTED_RE = re.compile(r"([\[{:,]\s*)'((?:[^'\\\n]|\\.)*)'")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def repair_json_text(text: str) -> str:
    repaired = _SINGLE_QUOTED_RE.sub(_double_quote, text)
    repaired = _BARE_KEY_RE.sub(r'\1"\2"\3', repaired)
    return _TRAILING_COMMA_RE.sub(r"\1", repaired)


def _double_quote(match: re.Match[str]) -> str:
    body = match.group(2).replace("\\'", "'").replace('"', '\\"')
    return f'{match.group(1)}"{body}"'
