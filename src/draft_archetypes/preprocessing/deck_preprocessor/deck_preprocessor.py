# src/draft_archetypes/preprocessing/deck_preprocessor/deck_preprocessor.py
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from draft_archetypes.config import (
    BASIC_LANDS,
    MIN_DECKS,
    OUTCOME_COLUMN,
    RANDOM_SEED,
    SAMPLE_SIZE,
)

logger = logging.getLogger(__name__)

GAMES_COLUMN = "games"
WINS_COLUMN = "wins"
META_COLUMNS = (OUTCOME_COLUMN, GAMES_COLUMN, WINS_COLUMN)


def card_columns(df: pl.DataFrame) -> List[str]:
    return [c for c in df.columns if c not in META_COLUMNS]


def drop_excluded_cards(df: pl.DataFrame, excluded: Sequence[str]) -> pl.DataFrame:
    """Remove non-playable card columns; names not in the frame are ignored."""
    present = [c for c in excluded if c in df.columns]
    if present:
        logger.info(f"Dropping {len(present)} excluded cards: {present}")
    return df.drop(present)


def drop_basic_lands(df: pl.DataFrame, basics: Sequence[str] = BASIC_LANDS) -> pl.DataFrame:
    return drop_excluded_cards(df, basics)


def drop_missing(df: pl.DataFrame, required: Optional[Sequence[str]] = None) -> pl.DataFrame:
    """Drop rows with a null in any required column (default: every card column)."""
    subset = list(required) if required is not None else card_columns(df)
    missing = [c for c in subset if c not in df.columns]
    if missing:
        raise ValueError(f"Required columns not found: {missing}")
    before = df.height
    df = df.drop_nulls(subset=subset)
    if df.height < before:
        logger.info(f"Dropped {before - df.height} rows with missing values")
    return df


def collapse_duplicate_decks(df: pl.DataFrame) -> pl.DataFrame:
    """
    Collapse game rows that share identical card counts into one deck record.

    Each record keeps the number of games it was played in and, when the
    outcome column is present, the number of those games that were won.
    Records appear in order of first occurrence.
    """
    cards = card_columns(df)
    aggs = [pl.len().alias(GAMES_COLUMN)]
    if OUTCOME_COLUMN in df.columns:
        aggs.append(pl.col(OUTCOME_COLUMN).cast(pl.Int64).sum().alias(WINS_COLUMN))

    decks = df.group_by(cards, maintain_order=True).agg(aggs)
    decks = decks.with_columns(pl.col(GAMES_COLUMN).cast(pl.Int64))
    logger.info(f"Collapsed {df.height} game rows into {decks.height} distinct decks")
    return decks


def sample_decks(df: pl.DataFrame, n: Optional[int], seed: int = RANDOM_SEED) -> pl.DataFrame:
    """Sample without replacement; never returns more than ``n`` rows."""
    if n is None or n >= df.height:
        return df
    return df.sample(n=n, with_replacement=False, shuffle=False, seed=seed)


def drop_empty_decks(df: pl.DataFrame) -> pl.DataFrame:
    """Decks made only of removed cards have no features left."""
    cards = card_columns(df)
    return df.filter(pl.sum_horizontal(cards) > 0)


def drop_unplayed_cards(df: pl.DataFrame) -> pl.DataFrame:
    cards = card_columns(df)
    totals = df.select(cards).sum().row(0)
    unplayed = [c for c, total in zip(cards, totals) if not total]
    if unplayed:
        logger.info(f"Dropping {len(unplayed)} cards never played in the sample")
    return df.drop(unplayed)


def to_count_matrix(df: pl.DataFrame) -> Tuple[np.ndarray, List[str]]:
    """Decks x cards integer count matrix and its column vocabulary."""
    cards = card_columns(df)
    return df.select(cards).to_numpy().astype(np.int64), cards


def transpose_deck_matrix(df: pl.DataFrame) -> pl.DataFrame:
    """Cards x decks orientation, one ``card`` column plus one column per deck."""
    cards = card_columns(df)
    return df.select(cards).transpose(
        include_header=True,
        header_name="card",
        column_names=[f"deck_{i}" for i in range(df.height)],
    )


@dataclass
class DeckMatrix:
    decks: pl.DataFrame       # one row per deck: card counts plus games/wins
    counts: np.ndarray        # decks x cards
    card_names: List[str]

    @property
    def n_decks(self) -> int:
        return self.counts.shape[0]

    @property
    def n_cards(self) -> int:
        return self.counts.shape[1]


class DeckPreprocessor:
    def __init__(
        self,
        excluded_cards: Sequence[str] = (),
        basic_lands: Sequence[str] = BASIC_LANDS,
        sample_size: Optional[int] = SAMPLE_SIZE,
        random_state: int = RANDOM_SEED,
        required_columns: Optional[Sequence[str]] = None,
        min_decks: int = MIN_DECKS,
    ):
        self.excluded_cards = tuple(excluded_cards)
        self.basic_lands = tuple(basic_lands)
        self.sample_size = sample_size
        self.random_state = random_state
        self.required_columns = required_columns
        self.min_decks = min_decks

        # Fitted state
        self.card_names_: List[str] = []
        self.n_games_: Optional[int] = None
        self.n_distinct_decks_: Optional[int] = None

    def fit_transform(self, df: pl.DataFrame) -> DeckMatrix:
        if df.height == 0:
            raise ValueError("Game data is empty")
        self.n_games_ = df.height

        df = drop_excluded_cards(df, self.excluded_cards)
        df = drop_missing(df, self.required_columns)
        logger.info(f"After dropping excluded cards and missing values: {df.shape}")

        df = collapse_duplicate_decks(df)
        self.n_distinct_decks_ = df.height

        df = sample_decks(df, self.sample_size, self.random_state)
        logger.info(f"Sampled {df.height} decks (seed={self.random_state})")

        df = drop_basic_lands(df, self.basic_lands)
        df = drop_empty_decks(df)
        df = drop_unplayed_cards(df)
        logger.info(f"Final deck table: {df.shape}")

        if df.height < self.min_decks:
            raise ValueError(f"Need at least {self.min_decks} decks to cluster, got {df.height}")

        counts, cards = to_count_matrix(df)
        self.card_names_ = cards
        return DeckMatrix(decks=df, counts=counts, card_names=cards)
