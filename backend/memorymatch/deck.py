"""Раскладка карт: каждый индекс встречается дважды, порядок случайный."""
import random


def make_card_indexes(pairs: int, rng: random.Random | None = None) -> list[int]:
    cards = [i for i in range(pairs) for _ in range(2)]
    (rng or random).shuffle(cards)
    return cards
