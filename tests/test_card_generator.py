import random

import pytest

from app.models.player import GameCard, Player
from app.services.card_generator import generate_round, previous_pair
from app.services.errors import EmptyCatalog, InsufficientPlayers
from app.services.word_catalog import WordCatalog


def _players(n):
    return [Player(name=f"P{i}") for i in range(n)]


@pytest.mark.parametrize("count", [3, 4, 7, 10])
def test_exactly_one_imposter(count, word_pairs):
    for seed in range(20):
        cards, imposter_index = generate_round(_players(count), word_pairs, 1, rng=random.Random(seed))

        assert len(cards) == count
        assert [i for i, c in enumerate(cards) if c.is_imposter] == [imposter_index]
        common = {c.word for c in cards if not c.is_imposter}
        assert len(common) == 1
        assert cards[imposter_index].word not in common


@pytest.mark.parametrize("count", [0, 1, 2])
def test_insufficient_players(count, word_pairs):
    players = _players(count)
    with pytest.raises(InsufficientPlayers):
        generate_round(players, word_pairs, 1)
    assert players == _players(count)


def test_empty_catalog():
    with pytest.raises(EmptyCatalog):
        generate_round(_players(3), [], 1)


def test_scripted_draw_is_exact(word_pairs, scripted):
    rng = scripted([1, 2])

    cards, imposter_index = generate_round(_players(4), word_pairs, 1, rng=rng)

    assert imposter_index == 2
    assert [c.word for c in cards] == ["Cat", "Cat", "Dog", "Cat"]
    assert rng.calls == [3, 4]


def test_fixed_imposter_only_draws_the_pair(word_pairs, scripted):
    rng = scripted([0])

    cards, imposter_index = generate_round(_players(3), word_pairs, 2, rng=rng, imposter_index=1)

    assert imposter_index == 1
    assert [c.word for c in cards] == ["Coffee", "Tea", "Coffee"]
    assert rng.calls == [3]


def test_fixed_imposter_out_of_range(word_pairs):
    with pytest.raises(ValueError):
        generate_round(_players(3), word_pairs, 2, imposter_index=3)


def test_previous_pair_never_repeats(word_pairs):
    rng = random.Random(7)
    previous = None
    for round_number in range(1, 50):
        cards, _ = generate_round(_players(3), word_pairs, round_number, rng=rng, previous=previous)
        pair = previous_pair(cards)
        assert pair != previous
        previous = pair


def test_single_pair_catalog_may_repeat():
    pairs = [("Coffee", "Tea")]
    cards, _ = generate_round(_players(3), pairs, 2, previous=("Coffee", "Tea"))
    assert previous_pair(cards) == ("Coffee", "Tea")


def test_previous_pair_from_cards():
    cards = [GameCard(word="Sun"), GameCard(word="Moon", is_imposter=True), GameCard(word="Sun")]
    assert previous_pair(cards) == ("Sun", "Moon")
    assert previous_pair([]) is None


def test_word_catalog_skips_malformed(tmp_path):
    path = tmp_path / "pairs.json"
    path.write_text(
        '{"pairs": [["Coffee", "Tea"], ["Solo"], ["Same", "same"], ["", "X"], ["Coffee", "Tea"], ["Cat", "Dog"]]}',
        encoding="utf-8",
    )
    catalog = WordCatalog(path)
    assert catalog.pairs() == [("Coffee", "Tea"), ("Cat", "Dog")]


def test_word_catalog_missing_file_is_empty(tmp_path):
    catalog = WordCatalog(tmp_path / "absent.json")
    assert len(catalog) == 0


def test_shipped_catalog_has_pairs():
    assert len(WordCatalog()) >= 2
