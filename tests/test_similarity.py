import pytest

from clinic_tools.matching.records import AccountRecord, AddressRecord
from clinic_tools.matching.similarity import (
    account_address_score,
    account_name_score,
    account_score,
    edit_similarity,
    score,
    token_overlap,
)

SAMPLE_PAIRS = [
    ("smith clinic", "smith fertility clinic"),
    ("johnson", "jonson"),
    ("alpha beta", "beta alpha"),
    ("acme", ""),
    ("123 n main st denver", "123 main st denver co"),
    ("a", "abcdefgh"),
]


@pytest.mark.parametrize("text", ["smith", "acme reproductive", "123 n main st ste 4"])
def test_identical_strings_score_one(text):
    assert score(text, text) == 1.0


def test_empty_strings():
    assert score("", "") == 1.0
    assert score(None, None) == 1.0
    assert score("smith", "") == 0.0
    assert score("", "smith") == 0.0


@pytest.mark.parametrize("a, b", SAMPLE_PAIRS)
def test_score_is_symmetric(a, b):
    assert score(a, b) == score(b, a)


@pytest.mark.parametrize("a, b", SAMPLE_PAIRS)
def test_score_is_bounded(a, b):
    assert 0.0 <= score(a, b) <= 1.0


def test_containment_scores_high():
    assert token_overlap("smith clinic", "smith fertility clinic") == 1.0
    assert score("smith clinic", "smith fertility clinic") > 0.8


def test_misspelling_scores_high_without_shared_tokens():
    assert token_overlap("johnson", "jonson") == 0.0
    assert score("johnson", "jonson") == pytest.approx(1 - 1 / 7)


def test_token_overlap_ignores_order():
    assert token_overlap("alpha beta", "beta alpha") == 1.0
    assert score("alpha beta", "beta alpha") >= 0.6


def test_edit_component_is_case_insensitive():
    assert edit_similarity("ABC", "abc") == 1.0
    assert score("SMITH", "smith") == 1.0


def test_unrelated_names_score_zero():
    assert score("smith", "jones") == 0.0


def _record(record_id, name, **address):
    return AccountRecord(id=record_id, name=name, address=AddressRecord(**address) if address else None)


class TestAccountScore:
    def test_name_mode_uses_normalized_names(self):
        first = _record("a", "Smith Fertility Clinic")
        second = _record("b", "The Smith Clinic, Inc.")
        assert account_score(first, second, "name") == 1.0

    def test_address_mode(self):
        first = _record("a", "Smith", line1="123 Main Street", city="Denver", state="CO")
        second = _record("b", "Jones", line1="123 Main St.", city="Denver", state="CO")
        assert account_score(first, second, "address") == 1.0

    def test_both_mode_averages_name_and_address(self):
        first = _record("a", "Smith Clinic", line1="100 Main St", city="Denver")
        second = _record("b", "Smith Fertility", line1="900 Oak Ave", city="Boulder")
        expected = (account_name_score(first, second) + account_address_score(first, second)) / 2
        assert account_score(first, second, "both") == pytest.approx(expected)
        assert account_score(first, second, "both") < account_score(first, second, "name")

    def test_both_mode_without_address_uses_name_only(self):
        first = _record("a", "Smith Clinic", line1="100 Main St", city="Denver")
        second = _record("b", "Smith Fertility")
        assert account_score(first, second, "both") == account_score(first, second, "name")

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            account_score(_record("a", "x"), _record("b", "y"), "fuzzy")
