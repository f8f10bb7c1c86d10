"""Heuristic extraction of patient form fields from dictated text.

Each form field owns an ordered list of patterns. The first pattern whose
capture survives cleaning and validation supplies the field's value; later
patterns for that field are not tried. Fields are independent of each other.

Free-text captures are lazy and stop at the first of: one of the field's
boundary keywords, a sentence-ending period, or the end of the text. The
boundary keywords keep one field from swallowing the next field's phrase in
continuous dictation.

This is best-effort pattern matching. Every populated field is meant to be
reviewed by the user before the record is saved.
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Pattern, Sequence, Tuple

from ..models.patient import ExtractedFields

logger = logging.getLogger(__name__)

_FLAGS = re.IGNORECASE

# A period ends a sentence unless it follows a common title abbreviation
# ("St. Mary's") or is a decimal point ("2.5 cm").
SENTENCE_END = (
    r"(?<!\bst)(?<!\bdr)(?<!\bmt)(?<!\bmr)(?<!\bms)(?<!\bmrs)\.(?!\d)"
)

# Optional connective between a trigger word and its value ("is", ":", "-").
# The value itself never starts with a connective.
_INTRO = r"\s*(?:(?:is|are|include)\b)?\s*[:\-]?\s*(?!\s*(?:is|are|include)\b)"

_K_WIRE = r"k(?:-|\s)?wire"
_FOLLOW_UP = r"follow(?:-|\s)?up"

_STRIP_CHARS = " \t,;:.-"


def capitalize_first(value: str) -> str:
    return value[:1].upper() + value[1:]


def title_case(value: str) -> str:
    return value.title()


def _always(value: str) -> bool:
    return True


def _valid_age(value: str) -> bool:
    return value.isdigit() and 1 <= int(value) <= 149


def bounded(trigger: str, boundaries: Sequence[str]) -> Pattern[str]:
    """Compile ``trigger`` followed by a lazy capture ending at a boundary."""
    stops = [SENTENCE_END] + [rf"\b{keyword}" for keyword in boundaries] + ["$"]
    return re.compile(rf"{trigger}(.+?)(?:{'|'.join(stops)})", _FLAGS)


def pattern(source: str) -> Pattern[str]:
    return re.compile(source, _FLAGS)


@dataclass(frozen=True)
class FieldRules:
    """Ordered extraction patterns for one form field.

    Every pattern must have exactly one capture group.
    """
    name: str
    patterns: Tuple[Pattern[str], ...]
    format: Callable[[str], str] = capitalize_first
    accept: Callable[[str], bool] = _always

    def extract(self, text: str) -> Optional[str]:
        for compiled in self.patterns:
            match = compiled.search(text)
            if not match or not match.group(1):
                continue
            value = match.group(1).strip(_STRIP_CHARS)
            if value and self.accept(value):
                return self.format(value)
        return None


def _default_rules() -> Tuple[FieldRules, ...]:
    diagnosis_stops = ("procedure", "treatment", "hospital")
    procedure_stops = ("hospital", "follow", "expected")
    hospital_stops = ("expect", "follow", "scheduled")
    expectation_stops = ("follow", "parameter", _K_WIRE, "splint")
    parameter_stops = (_K_WIRE, "splint", "suture", rf"first\s+{_FOLLOW_UP}")
    k_wire_stops = ("splint", "suture", "follow")
    splint_stops = ("suture", _K_WIRE, "follow")
    suture_stops = ("splint", _K_WIRE, "follow")

    return (
        FieldRules(
            "patientName",
            (
                pattern(r"\bpatient\s+(?:name\s+)?(?:is\s+)?(?!is\b)([a-z]+(?:\s+[a-z]+)+)"),
                pattern(r"\bname\s+(?:is\s+)?(?!is\b)([a-z]+(?:\s+[a-z]+)+)"),
                pattern(r"\bthis\s+is\s+([a-z]+\s+[a-z]+)(?:,|\s+age)"),
            ),
            format=title_case,
        ),
        FieldRules(
            "age",
            (
                pattern(r"\bage\s*(?:is\s+)?[:\-]?\s*(\d+)"),
                pattern(r"\b(\d+)(?:\s+|-)?years?\b"),
                pattern(r"\b(\d+)\s*yo\b"),
            ),
            format=lambda value: str(int(value)),
            accept=_valid_age,
        ),
        FieldRules(
            "diagnosis",
            (
                bounded(r"\bdiagnosis" + _INTRO, diagnosis_stops),
                bounded(r"\bdiagnosed\s+with\s+", diagnosis_stops),
                bounded(r"\bpresenting\s+with\s+", diagnosis_stops),
            ),
        ),
        FieldRules(
            "procedure",
            (
                bounded(r"\bprocedure" + _INTRO, procedure_stops),
                bounded(r"\b(?:underwent|undergoing|scheduled\s+for)\s+", procedure_stops),
                bounded(r"\bsurgery" + _INTRO, procedure_stops),
            ),
        ),
        FieldRules(
            "hospital",
            (
                bounded(r"\bhospital" + _INTRO, hospital_stops),
                pattern(r"\bat\s+([a-z\s]+(?:hospital|medical\s+center|clinic))"),
                pattern(r"\badmitted\s+to\s+(.+?hospital)"),
            ),
            format=title_case,
        ),
        FieldRules(
            "expectations",
            (
                bounded(r"\bexpect(?:ation)?s?" + _INTRO, expectation_stops),
                bounded(r"\banticipated\s+", expectation_stops),
                bounded(r"\bgoals?" + _INTRO, expectation_stops),
            ),
        ),
        FieldRules(
            "followUpParameters",
            (
                bounded(rf"\b(?:{_FOLLOW_UP}\s+)?parameters?" + _INTRO, parameter_stops),
                bounded(r"\bmonitor(?:ing)?\s+", parameter_stops),
            ),
        ),
        FieldRules(
            "kWireRemoval",
            (
                bounded(rf"\b{_K_WIRE}\s+removal\s+(?:at\s+)?", k_wire_stops),
                bounded(rf"\bremove\s+{_K_WIRE}s?\s+(?:at\s+)?", k_wire_stops),
            ),
        ),
        FieldRules(
            "splintChangeRemoval",
            (
                bounded(r"\bsplint\s+(?:change|removal)\s+(?:at\s+)?", splint_stops),
                bounded(r"\bchange\s+splint\s+(?:at\s+)?", splint_stops),
            ),
        ),
        FieldRules(
            "typeAndSutureRemoval",
            (
                bounded(r"\bsuture\s+removal\s+(?:at\s+)?", suture_stops),
                bounded(r"\bremove\s+sutures?\s+(?:at\s+)?", suture_stops),
                bounded(r"\b(?:absorbable|non-absorbable)\s+sutures?\s+", suture_stops),
            ),
        ),
        FieldRules(
            "followUpFirst",
            (bounded(rf"\bfirst\s+{_FOLLOW_UP}\s+", ("second", "third")),),
        ),
        FieldRules(
            "followUpSecond",
            (bounded(rf"\bsecond\s+{_FOLLOW_UP}\s+", ("third", "first")),),
        ),
        FieldRules(
            "followUpThird",
            (bounded(rf"\bthird\s+{_FOLLOW_UP}\s+", ("second", "first")),),
        ),
    )


class FieldExtractor:
    """Extracts structured patient fields from a transcript. Pure and stateless."""

    def __init__(self, rules: Optional[Sequence[FieldRules]] = None):
        self.rules: Tuple[FieldRules, ...] = tuple(rules) if rules is not None else _default_rules()

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(rule.name for rule in self.rules)

    def parse(self, text: str) -> ExtractedFields:
        """Extract every recognizable field; unrecognized fields are omitted."""
        normalized = " ".join((text or "").split())
        values: Dict[str, str] = {}
        if not normalized:
            return ExtractedFields(values)

        for rule in self.rules:
            value = rule.extract(normalized)
            if value:
                values[rule.name] = value

        missing = [name for name in self.field_names if name not in values]
        logger.debug(f"Extracted {len(values)} fields; not recognized: {missing}")
        return ExtractedFields(values)


_default_extractor: Optional[FieldExtractor] = None


def parse_patient_transcription(text: str) -> ExtractedFields:
    """Parse with the default rule set."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = FieldExtractor()
    return _default_extractor.parse(text)
