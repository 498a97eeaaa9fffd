"""Recover replies and structured records from raw model output.

Structured responses are expected to be a JSON array, but models wrap
arrays in commentary or code fences and occasionally emit slightly broken
JSON. Text that already parses is used as is; otherwise known breakages are
fixed by an explicit table of ``RepairRule`` entries applied in order and
the text is parsed again.
"""

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, NoReturn

from pydantic import BaseModel, ValidationError

from studybuddy.core.llm import GenerationError
from studybuddy.core.logging import get_logger, preview
from studybuddy.core.schemas_generation import Record, Success

logger = get_logger(__name__)

FALLBACK_REPLY = "Sorry, I couldn't generate a response."

DEFAULT_RECORD_KEYS = ("front", "back")


class MalformedOutputError(GenerationError):
    """The service answered but the content did not satisfy the expected shape.

    ``step`` names the extraction stage that failed: ``no_array``,
    ``parse_failure``, ``not_a_list``, ``empty_array``, ``no_valid_records``
    or ``too_few_records``.
    """

    def __init__(self, step: str, message: str):
        super().__init__(message)
        self.step = step
        self.message = message


@dataclass(frozen=True)
class RepairRule:
    """One known malformation pattern and its fix."""

    name: str
    pattern: re.Pattern[str]
    replacement: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def build_repair_rules(keys: Sequence[str] = DEFAULT_RECORD_KEYS) -> tuple[RepairRule, ...]:
    """
    Build the ordered repair table for records with the given field names.

    Args:
        keys: Field names the records are expected to carry. Key-specific
            rules are omitted when empty (e.g. arrays of plain strings).

    Returns:
        Rules in the order they must be applied
    """
    rules = [
        # Only curly quotes next to JSON punctuation; quotes inside text stay
        RepairRule(
            name="smart_quotes",
            pattern=re.compile(r"(?<=[\[{,:])(\s*)[“”„‟]|[“”„‟](?=\s*[:,}\]])"),
            replacement=r'\1"',
        ),
    ]

    if keys:
        key_group = "|".join(re.escape(key) for key in keys)
        rules.extend(
            [
                RepairRule(
                    name="single_quoted_key",
                    pattern=re.compile(rf"([{{,]\s*)'({key_group})'\s*:"),
                    replacement=r'\1"\2":',
                ),
                RepairRule(
                    name="unquoted_key",
                    pattern=re.compile(rf"([{{,]\s*)({key_group})\s*:"),
                    replacement=r'\1"\2":',
                ),
                # {"Card 1": "front": ...} or {Question "front": ...}
                RepairRule(
                    name="stray_label",
                    pattern=re.compile(
                        rf'([{{,]\s*)(?:"[^"{{}}\[\]]*"|[A-Za-z_][\w ]*?)\s*:?\s*(?="(?:{key_group})"\s*:)'
                    ),
                    replacement=r"\1",
                ),
            ]
        )

    rules.append(
        RepairRule(
            name="trailing_comma",
            pattern=re.compile(r",\s*([}\]])"),
            replacement=r"\1",
        )
    )
    return tuple(rules)


DEFAULT_REPAIR_RULES = build_repair_rules()


def strip_code_fences(raw_output: str) -> str:
    """Strip markdown code fences from model output.

    Handles: ```json ... ```, ``` ... ```, leading/trailing whitespace.
    """
    cleaned = raw_output.strip()

    fence_match = re.search(r"```(?:json)?\s*\n?(.*?)```", cleaned, re.DOTALL)
    if fence_match:
        return fence_match.group(1).strip()
    return cleaned


def find_array_span(text: str) -> str | None:
    """
    Return the first balanced ``[...]`` span, or None.

    Brackets inside double-quoted strings are ignored.
    """
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


class ResponseExtractor:
    """Pulls a reply or a validated record list out of a ``Success``."""

    def __init__(self, rules: Sequence[RepairRule] = DEFAULT_REPAIR_RULES):
        self.rules = tuple(rules)

    def reply(self, outcome: Success) -> str:
        """Primary text, then reasoning, then refusal, then a fixed apology."""
        for candidate in (outcome.raw_text, outcome.reasoning_text, outcome.refusal):
            if candidate and candidate.strip():
                return candidate.strip()
        logger.warning("Generation returned no usable reply text, using fallback reply")
        return FALLBACK_REPLY

    def repair(self, text: str) -> str:
        for rule in self.rules:
            repaired = rule.apply(text)
            if repaired != text:
                logger.debug(f"Applied repair rule '{rule.name}'")
            text = repaired
        return text

    def records(
        self,
        raw_text: str,
        validator: Callable[[Record], bool],
        *,
        max_records: int,
        min_records: int = 1,
    ) -> list[Record]:
        """
        Extract a JSON array of records from raw model text.

        Args:
            raw_text: Raw model output, possibly wrapped in commentary
            validator: Predicate every kept record must satisfy
            max_records: Extra valid records beyond this are dropped
            min_records: Fewer valid records than this is an error

        Returns:
            Valid records in original order, at most ``max_records``

        Raises:
            MalformedOutputError: If any extraction step fails
        """
        span = find_array_span(strip_code_fences(raw_text or ""))
        if span is None:
            self._fail("no_array", "No JSON array found in the response", raw_text)

        try:
            parsed = self._parse(span)
        except json.JSONDecodeError as e:
            self._fail("parse_failure", f"Could not parse the response as JSON: {e}", raw_text)

        if not isinstance(parsed, list):
            self._fail("not_a_list", "Response JSON is not an array", raw_text)
        if not parsed:
            self._fail("empty_array", "Response array is empty", raw_text)

        valid = [record for record in parsed if validator(record)]
        if not valid:
            self._fail("no_valid_records", "No records in the response passed validation", raw_text)
        if len(valid) < min_records:
            self._fail(
                "too_few_records",
                f"Only {len(valid)} valid records, at least {min_records} required",
                raw_text,
            )

        if len(valid) > max_records:
            logger.info(f"Truncating {len(valid)} records to the requested {max_records}")
        return valid[:max_records]

    def _parse(self, span: str) -> Any:
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            logger.debug("Array span is not valid JSON, applying repair rules")
        return json.loads(self.repair(span))

    def _fail(self, step: str, message: str, raw_text: str) -> NoReturn:
        logger.error(f"Structured extraction failed at {step}: {message} | raw={preview(raw_text)}")
        raise MalformedOutputError(step, message)


def conforms_to(model: type[BaseModel]) -> Callable[[Record], bool]:
    """Validator: ``model.model_validate`` accepts the record."""

    def _validate(record: Record) -> bool:
        try:
            model.model_validate(record)
        except ValidationError:
            return False
        return True

    return _validate


def non_empty_string(record: Record) -> bool:
    return isinstance(record, str) and bool(record.strip())
