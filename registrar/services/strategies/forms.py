"""Form heuristics shared by every site strategy.

Pure functions over form snapshots taken from the live page: field
classification, form scoring, mapping a family profile onto fields, and
reading confirmation pages. Nothing here touches the browser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from registrar.schemas.event import FamilyProfile

__all__ = [
    "FieldAssignment",
    "FieldKind",
    "FormField",
    "FormPlan",
    "FormSnapshot",
    "Verification",
    "build_assignments",
    "classify_field",
    "extract_confirmation_id",
    "field_confidence",
    "is_plausible_registration_form",
    "score_form",
    "select_best_form",
    "verify_confirmation_text",
]


class FieldKind(StrEnum):
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    FULL_NAME = "full_name"
    EMAIL = "email"
    PHONE = "phone"
    CHILD_COUNT = "child_count"
    PARTY_SIZE = "party_size"
    CHILDREN = "children"
    AGE = "age"
    MESSAGE = "message"
    UNKNOWN = "unknown"


# Input types that never carry family data
_IGNORED_INPUT_TYPES = frozenset(
    {"hidden", "submit", "button", "reset", "image", "file", "checkbox", "radio", "password"}
)

# Order matters: counts before children, children before names.
_FIELD_PATTERNS: tuple[tuple[FieldKind, re.Pattern[str]], ...] = (
    (FieldKind.EMAIL, re.compile(r"e.?mail", re.IGNORECASE)),
    (
        FieldKind.CHILD_COUNT,
        re.compile(
            r"(number|no\.?|num|#|how many)\s*(of\s*)?(children|kids|child)"
            r"|child.?count|kids.?count",
            re.IGNORECASE,
        ),
    ),
    (
        FieldKind.PARTY_SIZE,
        re.compile(
            r"party.?size|group.?size|attendees|guests|number.?of.?(people|tickets)|how many"
            r"|quantity|qty|headcount",
            re.IGNORECASE,
        ),
    ),
    (FieldKind.AGE, re.compile(r"(?<![a-z])ages?(?![a-z])|birth|dob", re.IGNORECASE)),
    (FieldKind.CHILDREN, re.compile(r"child|kid|participant", re.IGNORECASE)),
    (FieldKind.FIRST_NAME, re.compile(r"first.?name|fname|given.?name", re.IGNORECASE)),
    (FieldKind.LAST_NAME, re.compile(r"last.?name|lname|surname|family.?name", re.IGNORECASE)),
    (
        FieldKind.FULL_NAME,
        re.compile(
            r"full.?name|your.?name|contact.?name|parent.?name|guardian.?name"
            r"|(?<![a-z])name(?![a-z])",
            re.IGNORECASE,
        ),
    ),
    (FieldKind.PHONE, re.compile(r"phone|telephone|mobile|cell|\btel\b", re.IGNORECASE)),
    (FieldKind.MESSAGE, re.compile(r"comment|message|notes?|special|question", re.IGNORECASE)),
)

_REGISTRATION_KEYWORDS = (
    "register",
    "registration",
    "sign up",
    "signup",
    "rsvp",
    "reserve",
    "event",
    "first name",
    "last name",
    "email",
    "phone",
    "attend",
)

_NON_REGISTRATION_FORM = re.compile(
    r"newsletter|subscribe|search|log ?in|sign ?in|donat", re.IGNORECASE
)

_KIND_BONUS = {
    FieldKind.EMAIL: 25,
    FieldKind.FIRST_NAME: 15,
    FieldKind.FULL_NAME: 15,
    FieldKind.PHONE: 10,
    FieldKind.CHILD_COUNT: 10,
    FieldKind.PARTY_SIZE: 10,
}


@dataclass(frozen=True)
class FormField:
    """One input/select/textarea as seen in a form snapshot."""

    key: str
    tag: str = "input"
    input_type: str = "text"
    name: str = ""
    element_id: str = ""
    placeholder: str = ""
    label: str = ""
    required: bool = False

    @property
    def selector(self) -> str:
        return f'[data-registrar-field="{self.key}"]'

    @property
    def descriptor(self) -> str:
        """All human/machine hints about the field, joined."""
        parts = (self.name, self.element_id, self.placeholder, self.label)
        return " ".join(part for part in parts if part).strip()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormField:
        return cls(
            key=str(data["key"]),
            tag=str(data.get("tag") or "input").lower(),
            input_type=str(data.get("type") or "text").lower(),
            name=str(data.get("name") or ""),
            element_id=str(data.get("id") or ""),
            placeholder=str(data.get("placeholder") or ""),
            label=str(data.get("label") or ""),
            required=bool(data.get("required")),
        )


@dataclass(frozen=True)
class FormSnapshot:
    """A form on the page, tagged so its fields can be addressed later."""

    index: int
    fields: tuple[FormField, ...] = ()
    text: str = ""
    action: str = ""
    has_submit: bool = False

    @property
    def selector(self) -> str:
        return f'[data-registrar-form="{self.index}"]'

    @property
    def submit_selector(self) -> str:
        return f'[data-registrar-submit="{self.index}"]'

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FormSnapshot:
        return cls(
            index=int(data["index"]),
            fields=tuple(FormField.from_dict(f) for f in data.get("fields") or []),
            text=str(data.get("text") or ""),
            action=str(data.get("action") or ""),
            has_submit=bool(data.get("hasSubmit")),
        )


@dataclass(frozen=True)
class FieldAssignment:
    field: FormField
    kind: FieldKind
    value: str


@dataclass
class FormPlan:
    """The chosen form and what to type into it."""

    form: FormSnapshot
    score: int
    assignments: list[FieldAssignment] = field(default_factory=list)


@dataclass(frozen=True)
class Verification:
    success: bool
    message: str
    confirmation_id: str | None = None
    closed: bool = False


# ============================================================================
# Field classification
# ============================================================================


def classify_field(form_field: FormField) -> FieldKind:
    """Work out what a field asks for from its type and descriptors."""
    # Guard: non-data inputs
    if form_field.tag == "input" and form_field.input_type in _IGNORED_INPUT_TYPES:
        return FieldKind.UNKNOWN

    if form_field.input_type == "email":
        return FieldKind.EMAIL
    if form_field.input_type == "tel":
        return FieldKind.PHONE

    descriptor = form_field.descriptor
    for kind, pattern in _FIELD_PATTERNS:
        if pattern.search(descriptor):
            return kind
    return FieldKind.UNKNOWN


def field_confidence(form_field: FormField, kind: FieldKind) -> int:
    """Confidence (0-100) that ``form_field`` really is ``kind``."""
    if kind == FieldKind.UNKNOWN:
        return 0

    confidence = 50
    type_matches = {
        FieldKind.EMAIL: "email",
        FieldKind.PHONE: "tel",
        FieldKind.CHILD_COUNT: "number",
        FieldKind.PARTY_SIZE: "number",
        FieldKind.AGE: "number",
    }
    if type_matches.get(kind) == form_field.input_type:
        confidence += 30
    compact_descriptor = re.sub(r"[\s_\-]", "", form_field.descriptor.lower())
    if kind.value.replace("_", "") in compact_descriptor:
        confidence += 20
    if form_field.name or form_field.element_id:
        confidence += 10
    return min(confidence, 100)


# ============================================================================
# Form scoring
# ============================================================================


def _kinds(form: FormSnapshot) -> set[FieldKind]:
    return {classify_field(f) for f in form.fields}


def score_form(form: FormSnapshot) -> int:
    """Score how likely a form is an event registration form. 0 means not at all."""
    kinds = _kinds(form) - {FieldKind.UNKNOWN}
    # Guard: nothing we could fill
    if not kinds:
        return 0

    text = form.text.lower()
    score = sum(10 for keyword in _REGISTRATION_KEYWORDS if keyword in text)
    score += sum(
        field_confidence(f, kind) // 10
        for f in form.fields
        if (kind := classify_field(f)) != FieldKind.UNKNOWN
    )
    score += sum(_KIND_BONUS.get(kind, 0) for kind in kinds)
    if form.has_submit:
        score += 20
    if _NON_REGISTRATION_FORM.search(text):
        score -= 30
    return max(score, 0)


def is_plausible_registration_form(form: FormSnapshot) -> bool:
    """A registration form asks at least for an email and a name."""
    kinds = _kinds(form)
    has_name = bool(kinds & {FieldKind.FIRST_NAME, FieldKind.FULL_NAME})
    return FieldKind.EMAIL in kinds and has_name and score_form(form) > 0


def select_best_form(
    forms: list[FormSnapshot], min_score: int = 0
) -> tuple[FormSnapshot, int] | None:
    """Pick the highest scoring plausible form above ``min_score``."""
    candidates = [
        (form, score)
        for form in forms
        if is_plausible_registration_form(form) and (score := score_form(form)) > min_score
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda item: item[1])


# ============================================================================
# Profile mapping
# ============================================================================


def _value_for(kind: FieldKind, family: FamilyProfile) -> str | None:
    if kind == FieldKind.FIRST_NAME:
        return family.first_name
    if kind == FieldKind.LAST_NAME:
        return family.last_name or None
    if kind == FieldKind.FULL_NAME:
        return family.parent_name
    if kind == FieldKind.EMAIL:
        return family.parent_email
    if kind == FieldKind.PHONE:
        return family.phone
    if kind == FieldKind.CHILD_COUNT:
        return str(family.child_count) if family.children else None
    if kind == FieldKind.PARTY_SIZE:
        return str(family.party_size)
    if kind == FieldKind.CHILDREN:
        return family.children_summary or None
    if kind == FieldKind.AGE:
        return ", ".join(str(child.age) for child in family.children) or None
    return None


def build_assignments(form: FormSnapshot, family: FamilyProfile) -> list[FieldAssignment]:
    """Map the family profile onto the form, one field per kind.

    A second name/email field is used for the secondary parent when the
    profile has one.
    """
    assignments: list[FieldAssignment] = []
    seen: set[FieldKind] = set()

    for form_field in form.fields:
        kind = classify_field(form_field)
        if kind in (FieldKind.UNKNOWN, FieldKind.MESSAGE):
            continue

        if kind in seen:
            value = None
            if kind == FieldKind.FULL_NAME:
                value = family.secondary_parent_name
            elif kind == FieldKind.EMAIL:
                value = family.secondary_parent_email
            if value:
                assignments.append(FieldAssignment(form_field, kind, value))
            continue

        seen.add(kind)
        value = _value_for(kind, family)
        if value:
            assignments.append(FieldAssignment(form_field, kind, value))

    return assignments


# ============================================================================
# Confirmation pages
# ============================================================================

# Identifiers must contain a digit so "confirmation code below" is not a match
_ID = r"((?=[A-Z0-9\-]*\d)[A-Z0-9][A-Z0-9\-]{3,})"
_LABELLED_ID = r"\s*(?:number|code|id|#|no\.?)\s*(?:is)?\s*[:#]?\s*" + _ID

CONFIRMATION_PATTERNS = (
    re.compile(r"confirmation" + _LABELLED_ID, re.IGNORECASE),
    re.compile(r"reference" + _LABELLED_ID, re.IGNORECASE),
    re.compile(r"registration" + _LABELLED_ID, re.IGNORECASE),
    re.compile(r"\b(?:conf|ref|reg)\s*#\s*:?\s*((?=[A-Z0-9\-]*\d)[A-Z0-9\-]{6,})", re.IGNORECASE),
)

SUCCESS_TEXT_PATTERN = re.compile(
    r"thank you|thanks for registering|you(?:'re| are) (?:all )?(?:registered|signed up)"
    r"|registration (?:is )?(?:complete|confirmed|successful)"
    r"|successfully (?:registered|submitted)|we(?:'ve| have) received"
    r"|rsvp (?:is )?confirmed|see you there|confirmation (?:number|code|email)",
    re.IGNORECASE,
)

CLOSED_TEXT_PATTERN = re.compile(
    r"sold out|registration (?:is )?(?:closed|full)|event is full|fully booked"
    r"|no (?:spots|seats) (?:left|remaining)|added to (?:the )?wait.?list",
    re.IGNORECASE,
)

VALIDATION_ERROR_PATTERN = re.compile(
    r"(?:this field|field) is required|please (?:correct|fill|enter)|invalid (?:email|phone|entry)",
    re.IGNORECASE,
)

SUCCESS_URL_PATTERN = re.compile(r"success|confirm|thank", re.IGNORECASE)


def extract_confirmation_id(text: str) -> str | None:
    """Find a confirmation/reference/registration number in page text."""
    for pattern in CONFIRMATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def verify_confirmation_text(text: str, url: str = "", success_elements: int = 0) -> Verification:
    """Decide from the post-submit page whether registration went through.

    Args:
        text: Visible page text after submission
        url: Page URL after submission
        success_elements: Count of success/confirmation elements on the page
    """
    confirmation_id = extract_confirmation_id(text)

    if CLOSED_TEXT_PATTERN.search(text):
        return Verification(False, "Registration closed or full after submission", closed=True)

    if confirmation_id or success_elements > 0 or SUCCESS_TEXT_PATTERN.search(text):
        message = "Registration confirmed"
        if confirmation_id:
            message = f"Registration confirmed ({confirmation_id})"
        return Verification(True, message, confirmation_id)

    if url and SUCCESS_URL_PATTERN.search(url.split("?", 1)[0]):
        return Verification(True, "Registration submitted (confirmation page)")

    if VALIDATION_ERROR_PATTERN.search(text):
        return Verification(False, "Form rejected the submitted details")

    return Verification(False, "Could not verify registration after submission")
