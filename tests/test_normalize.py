import pytest

from clinic_tools.matching.normalize import (
    normalize_address,
    normalize_group_key,
    normalize_name,
    normalize_text,
    normalize_zip,
)


class TestNormalizeText:
    def test_lowercases_trims_and_collapses_whitespace(self):
        assert normalize_text("  Smith   Fertility\tClinic \n") == "smith fertility clinic"

    def test_none_becomes_empty_string(self):
        assert normalize_text(None) == ""

    def test_curly_apostrophes_are_folded(self):
        assert normalize_text("Women’s Health") == "women's health"


class TestNormalizeName:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Smith Fertility Clinic", "smith"),
            ("smith fertility clinic", "smith"),
            ("The Smith Clinic, Inc.", "smith"),
            ("Acme Reproductive Medicine LLC", "acme"),
            ("Jones Clinic", "jones"),
            ("Bright Women's Center", "bright"),
        ],
    )
    def test_strips_suffixes_and_noise_words(self, raw, expected):
        assert normalize_name(raw) == expected

    def test_display_string_is_not_mutated(self):
        original = "The Smith Clinic, Inc."
        normalize_name(original)
        assert original == "The Smith Clinic, Inc."

    def test_all_noise_name_falls_back_to_full_text(self):
        assert normalize_name("The Fertility Center") == "the fertility center"
        assert normalize_name("Medical Group") != normalize_name("Fertility Clinic")

    def test_noise_inside_a_word_is_kept(self):
        # "co" and "md" are whole-word suffixes only
        assert normalize_name("Cornerstone MDX") == "cornerstone mdx"

    def test_deterministic(self):
        assert normalize_name("Acme  Fertility") == normalize_name("Acme  Fertility")

    def test_empty_and_none(self):
        assert normalize_name("") == ""
        assert normalize_name(None) == ""


class TestNormalizeAddress:
    def test_joins_parts_and_abbreviates_street_words(self):
        assert (
            normalize_address("123 North Main Street", "Suite 4", "Kansas City", "MO", "64105-1234")
            == "123 n main st ste 4 kansas city mo 64105"
        )

    def test_missing_parts_contribute_nothing(self):
        result = normalize_address("500 Oak Ave.", None, "Denver", "", None)
        assert result == "500 oak ave denver"
        assert "none" not in result
        assert "null" not in result

    def test_empty_address(self):
        assert normalize_address() == ""

    def test_equivalent_spellings_match(self):
        assert normalize_address("12 Elm Road, #200") == normalize_address("12 elm rd 200")


class TestNormalizeZip:
    def test_keeps_first_five_digits(self):
        assert normalize_zip("64105-1234") == "64105"

    def test_codes_without_digits_are_trimmed_text(self):
        assert normalize_zip(" ABC ") == "abc"
        assert normalize_zip(None) == ""


class TestNormalizeGroupKey:
    def test_trim_and_casefold_only(self):
        assert normalize_group_key("  Acme Health ") == "acme health"
        assert normalize_group_key("ACME") == normalize_group_key("acme")

    def test_punctuation_is_significant(self):
        assert normalize_group_key("Acme, Inc.") != normalize_group_key("Acme Inc")

    def test_none(self):
        assert normalize_group_key(None) == ""
