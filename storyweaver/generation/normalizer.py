"""
Response normalizer - turn raw AI text into a canonical LessonContent.

The reply is untrusted text that is supposed to contain one JSON object.
Extraction runs in order, each step a pure attempt:

1. Direct parse: strip fences/labels, slice first '{' .. last '}', parse.
2. Brace-matched extraction: every balanced {...} substring is repaired and
   parsed; the longest one holding both mandatory keys wins (leftmost on ties).
3. Fallback: deterministic placeholder lesson.

Whatever object is extracted then goes through shape coercion, which fills
defaults instead of failing, so the result is always a complete lesson.
"""

import json
import logging
import re
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from storyweaver.errors import ExtractionError, ShapeError
from storyweaver.generation.fallback import fallback_lesson
from storyweaver.schemas import (
    CHOICE_KINDS,
    UNKNOWN,
    Exercise,
    LessonContent,
    VocabEntry,
    canonical_exercise_kind,
)

logger = logging.getLogger(__name__)

STORY_KEYS = ("story_text", "storyText", "story", "story_ru", "story_target")
TRANSLATION_KEYS = ("translation", "story_en", "english_translation")
VOCABULARY_KEYS = ("vocabulary", "vocab", "words")
EXERCISE_KEYS = ("exercises", "exercise", "quiz")

WORD_KEYS = ("word", "term", "original")
VOCAB_TRANSLATION_KEYS = ("translation", "meaning", "english", "definition")
POS_KEYS = ("part_of_speech", "partOfSpeech", "pos")
EXAMPLE_KEYS = ("example", "example_sentence", "exampleSentence", "usage")

KIND_KEYS = ("kind", "type", "exercise_type")
QUESTION_KEYS = ("question", "prompt", "q")
ANSWER_KEYS = ("answer", "correct_answer", "correctAnswer", "a")
OPTION_KEYS = ("options", "choices")

MISSING_STORY = "[story text missing from AI response]"
MISSING_TRANSLATION = "[translation missing from AI response]"


# -----------------------------------------------------------------------------
# Text cleanup and repair
# -----------------------------------------------------------------------------

CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\r]')
LEADING_FENCE = re.compile(r'^```[A-Za-z]*\s*')
TRAILING_FENCE = re.compile(r'\s*```$')
LEADING_LABEL = re.compile(r'^json\s*:\s*', re.IGNORECASE)

TRAILING_COMMA = re.compile(r',\s*([}\]])')
MISSING_COMMA = re.compile(r'("|\d|true|false|null|[}\]])([ \t]*\n\s*)(")')
UNQUOTED_STRING_FIELD = re.compile(
    r'("(?:part_of_speech|partOfSpeech|pos|type|kind)"\s*:\s*)([^\W\d_][\w \-]*?)(\s*[,}\]\n])'
)


def strip_wrapping(text: str) -> str:
    """Remove control characters, markdown fences, a 'JSON:' label and outer whitespace."""
    cleaned = CONTROL_CHARS.sub("", text).strip()
    cleaned = LEADING_FENCE.sub("", cleaned)
    cleaned = TRAILING_FENCE.sub("", cleaned)
    cleaned = LEADING_LABEL.sub("", cleaned.strip())
    return cleaned.strip()


def _quote_bare_word(match: re.Match) -> str:
    prefix, value, suffix = match.groups()
    if value.strip().lower() in ("true", "false", "null"):
        return match.group(0)
    return f'{prefix}"{value.strip()}"{suffix}'


def repair_json(text: str) -> str:
    """
    Apply light, local repairs to almost-JSON text.

    - drop trailing commas before '}' or ']'
    - insert a comma between a value and the next quoted key on a new line
    - quote bare-word values of known string fields (part_of_speech, type, ...)
    """
    repaired = UNQUOTED_STRING_FIELD.sub(_quote_bare_word, text)
    repaired = MISSING_COMMA.sub(r'\1,\2\3', repaired)
    repaired = TRAILING_COMMA.sub(r'\1', repaired)
    return repaired


def _loads(text: str) -> Any:
    # strict=False tolerates raw newlines inside strings, common in story text
    return json.loads(text, strict=False)


# -----------------------------------------------------------------------------
# Payload detection
# -----------------------------------------------------------------------------

def _has_any(obj: dict, keys: Iterable[str]) -> bool:
    return any(k in obj for k in keys)


def has_mandatory_keys(obj: Any, require_both: bool = True) -> bool:
    """True if `obj` is a dict with story text and translation keys (or either)."""
    if not isinstance(obj, dict):
        return False
    has_story = _has_any(obj, STORY_KEYS)
    has_translation = _has_any(obj, TRANSLATION_KEYS)
    if require_both:
        return has_story and has_translation
    return has_story or has_translation


def locate_payload(obj: Any) -> Optional[dict]:
    """
    Depth-first search for the first object holding a mandatory key.

    Only wrapper objects are searched. List entries (vocabulary items,
    exercises) carry their own `translation` keys and are never the payload.
    """
    if not isinstance(obj, dict):
        return None
    if has_mandatory_keys(obj, require_both=False):
        return obj
    for child in obj.values():
        found = locate_payload(child)
        if found is not None:
            return found
    return None


def find_balanced_candidates(text: str) -> list[tuple[int, int]]:
    """
    Find every balanced {...} substring.

    Two scans are merged: one that ignores braces inside JSON strings (only
    tracked while inside an object, so stray quotes in prose do not matter)
    and a plain brace counter for text whose quoting is broken.

    Returns:
        (start, end) spans, end-exclusive, longest first and leftmost on ties
    """
    spans: set[tuple[int, int]] = set()

    for string_aware in (True, False):
        stack: list[int] = []
        in_string = False
        escaped = False
        for i, ch in enumerate(text):
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"' and string_aware and stack:
                in_string = True
            elif ch == "{":
                stack.append(i)
            elif ch == "}" and stack:
                spans.add((stack.pop(), i + 1))

    return sorted(spans, key=lambda span: (span[0] - span[1], span[0]))


def _direct_parse(cleaned: str) -> Optional[dict]:
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        return None
    try:
        obj = _loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        logger.debug(f"Direct parse failed: {e}")
        return None
    return locate_payload(obj)


def _brace_matched(cleaned: str) -> tuple[Optional[dict], bool]:
    """Returns (payload, any_candidate_parsed)."""
    parsed_any = False
    for start, end in find_balanced_candidates(cleaned):
        snippet = cleaned[start:end]
        for attempt in (snippet, repair_json(snippet)):
            try:
                obj = _loads(attempt)
            except json.JSONDecodeError:
                continue
            parsed_any = True
            if has_mandatory_keys(obj):
                logger.debug(f"Brace-matched candidate at {start}:{end} accepted")
                return obj, True
            break
    return None, parsed_any


def extract_payload(raw_text: str) -> dict:
    """
    Extract the lesson object from raw AI text.

    Args:
        raw_text: Reply content as returned by the completion endpoint

    Returns:
        The parsed JSON object carrying the lesson fields

    Raises:
        ExtractionError: No parseable JSON object in the text
        ShapeError: JSON was found but none of it is a lesson payload
    """
    if not isinstance(raw_text, str):
        raise ExtractionError(f"response is {type(raw_text).__name__}, not text")

    cleaned = strip_wrapping(raw_text)
    if "{" not in cleaned or "}" not in cleaned:
        raise ExtractionError("no JSON structure found")

    payload = _direct_parse(cleaned)
    if payload is not None:
        logger.debug("Lesson payload extracted by direct parse")
        return payload

    payload, parsed_any = _brace_matched(cleaned)
    if payload is not None:
        return payload

    if parsed_any:
        raise ShapeError("JSON found but it has no story_text/translation")
    raise ExtractionError("no parseable JSON object found")


# -----------------------------------------------------------------------------
# Shape coercion
# -----------------------------------------------------------------------------

def _first(obj: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        if key in obj and obj[key] is not None:
            return obj[key]
    return None


def _as_text(value: Any, default: str, allow_scalars: bool = False) -> str:
    if isinstance(value, str):
        return value.strip() or default
    if allow_scalars:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
    return default


def _long_text(value: Any, placeholder: str) -> str:
    if isinstance(value, list):
        value = "\n".join(v.strip() for v in value if isinstance(v, str) and v.strip())
    if isinstance(value, str) and value.strip():
        return value.strip()
    return placeholder


def coerce_vocab_entry(item: Any) -> Optional[VocabEntry]:
    """Bare strings become a word; objects get missing subfields defaulted."""
    if isinstance(item, str):
        if not item.strip():
            return None
        return VocabEntry(word=item.strip())
    if isinstance(item, dict):
        return VocabEntry(
            word=_as_text(_first(item, WORD_KEYS), UNKNOWN),
            translation=_as_text(_first(item, VOCAB_TRANSLATION_KEYS), UNKNOWN),
            part_of_speech=_as_text(_first(item, POS_KEYS), UNKNOWN),
            example=_as_text(_first(item, EXAMPLE_KEYS), ""),
        )
    return None


def coerce_vocabulary(value: Any) -> list[VocabEntry]:
    if isinstance(value, dict):
        # {"word": "translation", ...}
        return [
            VocabEntry(word=str(word).strip() or UNKNOWN, translation=_as_text(meaning, UNKNOWN))
            for word, meaning in value.items()
        ]
    if not isinstance(value, list):
        return []
    entries = []
    for item in value:
        entry = coerce_vocab_entry(item)
        if entry is None:
            logger.debug(f"Skipping vocabulary item: {item!r}")
            continue
        entries.append(entry)
    return entries


def _coerce_options(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [
        text for text in (_as_text(o, "", allow_scalars=True) for o in value)
        if text
    ]


def _exercise_fields(item: Any, kind_override: Optional[str] = None) -> Optional[dict]:
    if isinstance(item, str):
        if not item.strip():
            return None
        return {
            "kind": canonical_exercise_kind(kind_override),
            "question": item.strip(),
            "answer": UNKNOWN,
            "options": [],
        }
    if not isinstance(item, dict):
        return None

    kind = canonical_exercise_kind(kind_override if kind_override is not None else _first(item, KIND_KEYS))
    options = _coerce_options(_first(item, OPTION_KEYS)) if kind in CHOICE_KINDS else []
    return {
        "kind": kind,
        "question": _as_text(_first(item, QUESTION_KEYS), UNKNOWN, allow_scalars=True),
        "answer": _as_text(_first(item, ANSWER_KEYS), UNKNOWN, allow_scalars=True),
        "options": options,
    }


def _flatten_exercise_map(value: dict) -> list[dict]:
    """{"fill_blank": ["What is X?", {...}], "qna": "..."} -> flat list."""
    flat = []
    for kind, entries in value.items():
        items = entries if isinstance(entries, list) else [entries]
        for item in items:
            fields = _exercise_fields(item, kind_override=str(kind))
            if fields is not None:
                flat.append(fields)
    return flat


def coerce_exercises(value: Any) -> list[Exercise]:
    """
    Normalize exercises to a flat list with positional ids.

    Accepts a list of objects/strings, a single exercise object, or a map of
    lists keyed by exercise kind.
    """
    if isinstance(value, dict):
        if _has_any(value, QUESTION_KEYS):
            raw = [_exercise_fields(value)]
        else:
            raw = _flatten_exercise_map(value)
    elif isinstance(value, list):
        raw = [_exercise_fields(item) for item in value]
    else:
        raw = []

    fields_list = [f for f in raw if f is not None]
    return [
        Exercise(id=f"ex-{i}", **fields)
        for i, fields in enumerate(fields_list, 1)
    ]


def coerce_lesson(payload: dict) -> LessonContent:
    """
    Coerce an extracted object into a LessonContent.

    Missing story text or translation get a placeholder naming the gap;
    vocabulary and exercises degrade to empty lists.

    Raises:
        ShapeError: If the payload is not an object or the model rejects it
    """
    if not isinstance(payload, dict):
        raise ShapeError(f"payload is {type(payload).__name__}, not an object")

    story_text = _long_text(_first(payload, STORY_KEYS), MISSING_STORY)
    translation = _long_text(_first(payload, TRANSLATION_KEYS), MISSING_TRANSLATION)
    if story_text == MISSING_STORY or translation == MISSING_TRANSLATION:
        logger.warning("AI response is missing story text or translation; placeholder used")

    try:
        return LessonContent(
            story_text=story_text,
            translation=translation,
            vocabulary=coerce_vocabulary(_first(payload, VOCABULARY_KEYS)),
            exercises=coerce_exercises(_first(payload, EXERCISE_KEYS)),
        )
    except ValidationError as e:
        raise ShapeError(f"lesson failed validation: {e}") from e


# -----------------------------------------------------------------------------
# Entry points
# -----------------------------------------------------------------------------

def normalize_with_status(raw_text: str, language: str, topic: str) -> tuple[LessonContent, bool]:
    """
    Normalize raw AI text, reporting whether the fallback was used.

    Returns:
        (lesson, used_fallback)
    """
    try:
        payload = extract_payload(raw_text)
        return coerce_lesson(payload), False
    except (ExtractionError, ShapeError) as e:
        logger.warning(f"AI response validation failed, creating fallback content: {e}")
        logger.debug(f"Raw AI response: {raw_text!r}")
        return fallback_lesson(language, topic), True


def normalize_response(raw_text: str, language: str, topic: str) -> LessonContent:
    """Normalize raw AI text into a LessonContent; never raises."""
    lesson, _ = normalize_with_status(raw_text, language, topic)
    return lesson
