import pytest

from app.services.roster.checklist import (
    CURRICULUM_VITAE,
    DEFAULT_REQUIREMENT_TYPES,
    MEDICAL_CERTIFICATE,
    MOA,
    PARENTAL_CONSENT,
    PROOF_OF_ENROLLMENT,
    RequirementChecklist,
    default_checklist,
)


class TestChecklistDefinition:
    """Test the fixed requirement list."""

    def test_has_seven_ordered_types(self):
        assert len(default_checklist) == 7
        assert list(default_checklist) == list(DEFAULT_REQUIREMENT_TYPES)
        assert list(default_checklist)[0] == PROOF_OF_ENROLLMENT

    def test_legacy_consent_key_follows_current_name(self):
        keys = default_checklist.approval_keys_for(PARENTAL_CONSENT)
        assert keys == (PARENTAL_CONSENT, "Parent/Guardian Consent Form")

    def test_types_without_legacy_names_have_one_key(self):
        assert default_checklist.approval_keys_for(MOA) == (MOA,)


class TestCanonicalize:
    """Test alias and keyword normalization of folder names."""

    @pytest.mark.parametrize("raw", ["resume", "CV", "curriculum-vitae", "My_Resume_2024", "Curriculum Vitae"])
    def test_resume_variants_map_to_cv(self, raw):
        assert default_checklist.canonicalize(raw) == CURRICULUM_VITAE

    @pytest.mark.parametrize("raw", ["moa", "Memorandum-of-Agreement", "signed agreement"])
    def test_moa_variants(self, raw):
        assert default_checklist.canonicalize(raw) == MOA

    def test_legacy_consent_folder_name(self):
        assert default_checklist.canonicalize("Parent/Guardian Consent Form") == PARENTAL_CONSENT

    def test_dashes_and_underscores_read_as_spaces(self):
        assert default_checklist.canonicalize("medical_certificate") == MEDICAL_CERTIFICATE

    def test_unknown_name_passes_through_unchanged(self):
        assert default_checklist.canonicalize("Company ID") == "Company ID"
        assert not default_checklist.is_canonical("Company ID")

    @pytest.mark.parametrize("raw", [None, "", "   ", 42])
    def test_never_raises(self, raw):
        result = default_checklist.canonicalize(raw)
        assert isinstance(result, str)

    @pytest.mark.parametrize(
        "raw",
        ["resume", "CV", "moa", "consent", "Proof of Enrollment (COM)", "Company ID", "", "psych-eval", "insurance policy"],
    )
    def test_idempotent(self, raw):
        once = default_checklist.canonicalize(raw)
        assert default_checklist.canonicalize(once) == once


class TestCustomChecklist:
    """Test a checklist built with a narrower type list."""

    def test_aliases_to_missing_types_are_dropped(self):
        checklist = RequirementChecklist(requirement_types=[MEDICAL_CERTIFICATE])
        assert checklist.canonicalize("resume") == "resume"
        assert checklist.canonicalize("medical") == MEDICAL_CERTIFICATE

    def test_custom_alias_table(self):
        checklist = RequirementChecklist(
            requirement_types=[CURRICULUM_VITAE],
            aliases={"bio data": CURRICULUM_VITAE},
            keyword_rules=(),
        )
        assert checklist.canonicalize("Bio Data") == CURRICULUM_VITAE
        assert checklist.canonicalize("cv") == "cv"
