import re
from typing import Dict, Iterable, Optional, Sequence, Tuple

PROOF_OF_ENROLLMENT = "Proof of Enrollment (COM)"
PARENTAL_CONSENT = "Notarized Parental Consent"
MEDICAL_CERTIFICATE = "Medical Certificate"
PSYCHOLOGICAL_TEST = "Psychological Test Certification"
PROOF_OF_INSURANCE = "Proof of Insurance"
MOA = "Memorandum of Agreement"
CURRICULUM_VITAE = "Curriculum Vitae"

DEFAULT_REQUIREMENT_TYPES: Tuple[str, ...] = (
    PROOF_OF_ENROLLMENT,
    PARENTAL_CONSENT,
    MEDICAL_CERTIFICATE,
    PSYCHOLOGICAL_TEST,
    PROOF_OF_INSURANCE,
    MOA,
    CURRICULUM_VITAE,
)

# Approvals recorded before the consent requirement was renamed
LEGACY_APPROVAL_KEYS: Dict[str, Tuple[str, ...]] = {
    PARENTAL_CONSENT: ("Parent/Guardian Consent Form",),
}

# Exact (case-insensitive) folder/field names seen in storage and approval records
DEFAULT_ALIASES: Dict[str, str] = {
    "com": PROOF_OF_ENROLLMENT,
    "proof of enrollment": PROOF_OF_ENROLLMENT,
    "proof-of-enrollment": PROOF_OF_ENROLLMENT,
    "certificate of matriculation": PROOF_OF_ENROLLMENT,
    "parent/guardian consent form": PARENTAL_CONSENT,
    "parental consent": PARENTAL_CONSENT,
    "parent consent": PARENTAL_CONSENT,
    "consent form": PARENTAL_CONSENT,
    "medical": MEDICAL_CERTIFICATE,
    "medical cert": MEDICAL_CERTIFICATE,
    "medical-certificate": MEDICAL_CERTIFICATE,
    "psychological test": PSYCHOLOGICAL_TEST,
    "psych test": PSYCHOLOGICAL_TEST,
    "psychological-test-certification": PSYCHOLOGICAL_TEST,
    "insurance": PROOF_OF_INSURANCE,
    "proof-of-insurance": PROOF_OF_INSURANCE,
    "moa": MOA,
    "memorandum-of-agreement": MOA,
    "resume": CURRICULUM_VITAE,
    "cv": CURRICULUM_VITAE,
    "curriculum-vitae": CURRICULUM_VITAE,
}

# Fallback keyword rules, checked in order against the lowercased name
DEFAULT_KEYWORD_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"resume|curriculum|vitae|\bcv\b"), CURRICULUM_VITAE),
    (re.compile(r"memorandum|agreement|\bmoa\b"), MOA),
    (re.compile(r"consent|parent|guardian"), PARENTAL_CONSENT),
    (re.compile(r"medical"), MEDICAL_CERTIFICATE),
    (re.compile(r"psych"), PSYCHOLOGICAL_TEST),
    (re.compile(r"insurance"), PROOF_OF_INSURANCE),
    (re.compile(r"enrol|matriculation|\bcom\b"), PROOF_OF_ENROLLMENT),
)


class RequirementChecklist:
    """Fixed, ordered set of documents every student must submit."""

    def __init__(
        self,
        requirement_types: Sequence[str] = DEFAULT_REQUIREMENT_TYPES,
        aliases: Optional[Dict[str, str]] = None,
        keyword_rules: Iterable[Tuple[re.Pattern, str]] = DEFAULT_KEYWORD_RULES,
        legacy_approval_keys: Optional[Dict[str, Tuple[str, ...]]] = None,
    ):
        self.requirement_types: Tuple[str, ...] = tuple(requirement_types)
        self._canonical = set(self.requirement_types)

        alias_table = dict(DEFAULT_ALIASES if aliases is None else aliases)
        # Canonical names always map to themselves, which keeps canonicalize idempotent
        for name in self.requirement_types:
            alias_table[name.lower()] = name
        self._aliases = {
            key.strip().lower(): value
            for key, value in alias_table.items()
            if value in self._canonical
        }
        self._keyword_rules = tuple(
            (pattern, target)
            for pattern, target in keyword_rules
            if target in self._canonical
        )
        self.legacy_approval_keys = (
            LEGACY_APPROVAL_KEYS if legacy_approval_keys is None else legacy_approval_keys
        )

    def __len__(self) -> int:
        return len(self.requirement_types)

    def __iter__(self):
        return iter(self.requirement_types)

    def is_canonical(self, name: str) -> bool:
        return name in self._canonical

    def canonicalize(self, raw_name) -> str:
        """
        Map a storage folder or approval field name to its canonical requirement type.

        Exact alias match first, then keyword match; anything unrecognised is
        returned unchanged so it can still be displayed. Never raises.
        """
        if raw_name is None:
            return ""
        if not isinstance(raw_name, str):
            raw_name = str(raw_name)
        if raw_name in self._canonical:
            return raw_name

        key = raw_name.strip().lower()
        if not key:
            return raw_name

        exact = self._aliases.get(key)
        if exact is not None:
            return exact

        # Folder names often use dashes/underscores in place of spaces
        spaced = re.sub(r"[_\-]+", " ", key)
        exact = self._aliases.get(spaced)
        if exact is not None:
            return exact

        for pattern, target in self._keyword_rules:
            if pattern.search(spaced):
                return target

        return raw_name

    def approval_keys_for(self, requirement_type: str) -> Tuple[str, ...]:
        """Keys an approval for this type may be stored under, current name first."""
        return (requirement_type,) + tuple(
            self.legacy_approval_keys.get(requirement_type, ())
        )


default_checklist = RequirementChecklist()
