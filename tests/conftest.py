import matplotlib

matplotlib.use("Agg")

import numpy as np
import polars as pl
import pytest

ARCHETYPES = ("Alpha", "Beta", "Gamma")
POOL_SIZE = 20
CARDS_PER_DECK = 15
GENERIC_CARDS = [f"Generic Card {i}" for i in range(8)]
BASICS = ["Plains", "Island"]
BACK_FACE = "Hakka, Whispering Raven"


def make_planted_games(n_per_archetype: int = 30, n_repeats: int = 5, seed: int = 0):
    """
    Game rows drawn from three disjoint card pools, one pool per archetype.

    Returns the raw game-data frame (``deck_`` columns plus unrelated
    columns) and the archetype index of every row.
    """
    rng = np.random.default_rng(seed)
    pools = {a: [f"{a} Card {i}" for i in range(POOL_SIZE)] for a in ARCHETYPES}
    vocabulary = [c for a in ARCHETYPES for c in pools[a]] + GENERIC_CARDS + BASICS + [BACK_FACE]

    rows, archetypes = [], []
    for idx, archetype in enumerate(ARCHETYPES):
        for _ in range(n_per_archetype):
            counts = dict.fromkeys(vocabulary, 0)
            for name in rng.choice(pools[archetype], size=CARDS_PER_DECK, replace=False):
                counts[name] = int(rng.integers(1, 3))
            for name in rng.choice(GENERIC_CARDS, size=2, replace=False):
                counts[name] += 1
            counts["Plains"] = int(rng.integers(6, 10))
            counts["Island"] = 17 - counts["Plains"]
            rows.append(counts)
            archetypes.append(idx)

    # Same deck played again in later games
    for i in range(n_repeats):
        rows.append(dict(rows[i]))
        archetypes.append(archetypes[i])

    data = {f"deck_{name}": [r[name] for r in rows] for name in vocabulary}
    n = len(rows)
    frame = pl.DataFrame({
        "expansion": ["KHM"] * n,
        "event_type": ["PremierDraft"] * n,
        **data,
        "won": [bool(i % 2) for i in range(n)],
        "user_n_games_bucket": [None if i % 7 == 0 else 10 for i in range(n)],
    })
    return frame, np.array(archetypes)


@pytest.fixture
def planted_games():
    return make_planted_games()


@pytest.fixture
def game_csv(tmp_path, planted_games):
    frame, _ = planted_games
    path = tmp_path / "game-data.KHM.PremierDraft.csv"
    frame.write_csv(path)
    return path


@pytest.fixture
def small_decks():
    """Hand-written deck table with known totals."""
    return pl.DataFrame({
        "Squash": [2, 1, 0, 0, 1],
        "Demon Bolt": [1, 1, 0, 0, 0],
        "Behold the Multitude": [0, 0, 2, 1, 0],
        "Icehide Troll": [0, 1, 1, 2, 0],
        "games": [3, 1, 2, 1, 1],
        "wins": [2, 0, 1, 1, 0],
    })
