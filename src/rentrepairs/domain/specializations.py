"""Worker specializations and required-specialization inference.

The specialization set is closed: every comparison goes through the
:class:`Specialization` enum, never through free-form strings.

:func:`determine_specialization` is the only legitimate source of a
request's required specialization. It is pure and deterministic, and it
never fails: ambiguous input resolves to :attr:`Specialization.GENERAL`.
"""

from __future__ import annotations

import re
from enum import StrEnum

from rentrepairs.domain.errors import DomainValidationError


class Specialization(StrEnum):
    """Trade categories a worker is qualified for and a request requires."""

    GENERAL = "general"
    PLUMBING = "plumbing"
    ELECTRICAL = "electrical"
    HVAC = "hvac"
    CARPENTRY = "carpentry"
    PAINTING = "painting"
    LOCKSMITH = "locksmith"
    APPLIANCE_REPAIR = "appliance_repair"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


DISPLAY_NAMES: dict[Specialization, str] = {
    Specialization.GENERAL: "General Maintenance",
    Specialization.PLUMBING: "Plumbing",
    Specialization.ELECTRICAL: "Electrical",
    Specialization.HVAC: "HVAC",
    Specialization.CARPENTRY: "Carpentry",
    Specialization.PAINTING: "Painting",
    Specialization.LOCKSMITH: "Locksmith",
    Specialization.APPLIANCE_REPAIR: "Appliance Repair",
}

# Keyword stems per specialization. Matched at word starts, case-insensitive.
SPECIALIZATION_KEYWORDS: dict[Specialization, tuple[str, ...]] = {
    Specialization.APPLIANCE_REPAIR: (
        "appliance",
        "refrigerator",
        "fridge",
        "washer",
        "dryer",
        "dishwasher",
        "oven",
        "stove",
        "microwave",
        "freezer",
    ),
    Specialization.LOCKSMITH: (
        "lock",
        "key",
        "deadbolt",
        "locked out",
        "lockout",
        "unlock",
        "rekey",
    ),
    Specialization.PLUMBING: (
        "plumb",
        "leak",
        "water",
        "drain",
        "pipe",
        "faucet",
        "tap",
        "toilet",
        "sink",
        "clog",
        "drip",
        "flush",
        "sewer",
        "shower",
    ),
    Specialization.ELECTRICAL: (
        "electric",
        "power",
        "outlet",
        "socket",
        "wiring",
        "light",
        "switch",
        "breaker",
        "circuit",
        "lamp",
        "fixture",
        "voltage",
        "spark",
    ),
    Specialization.HVAC: (
        "hvac",
        "furnace",
        "thermostat",
        "ventilation",
        "conditioner",
        "heating",
        "cooling",
        "heat pump",
        "air conditioning",
        "radiator",
    ),
    Specialization.PAINTING: ("paint", "repaint", "brush", "roller"),
    Specialization.CARPENTRY: (
        "wood",
        "cabinet",
        "carpent",
        "shelf",
        "shelves",
        "door frame",
        "floorboard",
    ),
}

# More specific trades are checked first: "dishwasher leaking" is an
# appliance job, "lock on the cabinet" is a locksmith job.
PRIORITY_ORDER: tuple[Specialization, ...] = (
    Specialization.APPLIANCE_REPAIR,
    Specialization.LOCKSMITH,
    Specialization.PLUMBING,
    Specialization.ELECTRICAL,
    Specialization.HVAC,
    Specialization.PAINTING,
    Specialization.CARPENTRY,
)

_ALIASES: dict[str, Specialization] = {
    "general": Specialization.GENERAL,
    "general maintenance": Specialization.GENERAL,
    "maintenance": Specialization.GENERAL,
    "plumber": Specialization.PLUMBING,
    "electrician": Specialization.ELECTRICAL,
    "hvac technician": Specialization.HVAC,
    "carpenter": Specialization.CARPENTRY,
    "painter": Specialization.PAINTING,
    "appliance repair": Specialization.APPLIANCE_REPAIR,
    "appliance technician": Specialization.APPLIANCE_REPAIR,
    "appliance": Specialization.APPLIANCE_REPAIR,
}

_KEYWORD_PATTERNS: dict[Specialization, re.Pattern[str]] = {
    spec: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")")
    for spec, keywords in SPECIALIZATION_KEYWORDS.items()
}


def _normalize(text: str) -> str:
    return re.sub(r"[\s_\-]+", " ", text.strip().lower())


def try_parse_specialization(text: str | None) -> Specialization | None:
    """Parse *text* into a specialization, or None if it is not recognized.

    Accepts enum values (``"appliance_repair"``), display names
    (``"Appliance Repair"``) and common aliases (``"plumber"``).
    """
    if text is None or not text.strip():
        return None
    normalized = _normalize(text)
    for spec in Specialization:
        if normalized in (_normalize(spec.value), _normalize(spec.display_name)):
            return spec
    return _ALIASES.get(normalized)


def parse_specialization(text: str) -> Specialization:
    """Strictly parse *text* into a specialization.

    Raises:
        DomainValidationError: If *text* names no known specialization.
    """
    spec = try_parse_specialization(text)
    if spec is None:
        raise DomainValidationError(
            f"Unknown specialization: {text!r}",
            code="UNKNOWN_SPECIALIZATION",
            field="specialization",
            allowed=[s.value for s in Specialization],
        )
    return spec


def infer_from_description(description: str) -> Specialization | None:
    """Keyword inference over *description*; None when nothing matches."""
    text = description.lower()
    for spec in PRIORITY_ORDER:
        if _KEYWORD_PATTERNS[spec].search(text):
            return spec
    return None


def determine_specialization(
    description: str,
    category_hint: str | Specialization | None = None,
) -> Specialization:
    """Determine the specialization a request requires.

    A valid *category_hint* takes precedence over keyword inference from
    *description*. When neither yields a match, returns
    :attr:`Specialization.GENERAL`.
    """
    if isinstance(category_hint, Specialization):
        return category_hint
    hinted = try_parse_specialization(category_hint)
    if hinted is not None:
        return hinted
    return infer_from_description(description or "") or Specialization.GENERAL


def can_handle(
    worker_specialization: Specialization,
    required: Specialization,
    *,
    allow_general: bool = False,
) -> bool:
    """Whether a worker with *worker_specialization* may take *required* work.

    A general worker covers other trades only when the caller's fallback
    policy grants it through *allow_general*.
    """
    if worker_specialization == required:
        return True
    return allow_general and worker_specialization == Specialization.GENERAL
