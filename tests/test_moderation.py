import pytest

from restspace.utils.moderation import contains_hate_speech, normalize_for_matching


@pytest.mark.parametrize("text", [
    "KILL ALL of them",
    "death_to everyone",
    "ethnic-cleansing now",
    "sub human",
    "génocide",
])
def test_blocked(text):
    assert contains_hate_speech(text)


@pytest.mark.parametrize("text", [
    "a quiet evening with tea",
    "I want to skill up this year",
    "the scunthorpe problem",
    "grass is green",
])
def test_allowed(text):
    assert not contains_hate_speech(text)


def test_normalize_strips_accents_and_separators():
    assert normalize_for_matching("café_au-lait...") == "cafe au lait "
