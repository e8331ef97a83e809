"""
Cluster inspection utilities for draft deck archetypes.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np
import polars as pl

from draft_archetypes.config import TOP_N_CARDS
from draft_archetypes.preprocessing.deck_preprocessor.deck_preprocessor import (
    GAMES_COLUMN,
    WINS_COLUMN,
    card_columns,
)


def _check_labels(decks: pl.DataFrame, labels: np.ndarray) -> np.ndarray:
    labels = np.asarray(labels)
    if len(labels) != decks.height:
        raise ValueError(f"Got {len(labels)} labels for {decks.height} decks")
    return labels


def top_cards_for_cluster(
    decks: pl.DataFrame,
    labels: np.ndarray,
    cluster_id: int,
    top_n: int = TOP_N_CARDS,
) -> pl.DataFrame:
    """
    Aggregate card counts over the decks of one cluster.

    Args:
        decks: Deck table (card count columns, optionally games/wins)
        labels: Cluster label per deck
        cluster_id: Cluster to inspect
        top_n: Number of cards to keep

    Returns:
        DataFrame with ``card``, ``count`` and ``per_deck`` columns sorted by
        count descending (ties by card name), cards absent from the
        cluster left out, at most ``top_n`` rows
    """
    labels = _check_labels(decks, labels)
    mask = labels == cluster_id
    if not mask.any():
        raise ValueError(f"Cluster {cluster_id} not found; available: {sorted(set(labels.tolist()))}")

    cards = card_columns(decks)
    n_decks = int(mask.sum())
    totals = decks.select(cards).filter(pl.Series(mask)).sum()
    table = pl.DataFrame({
        "card": cards,
        "count": [int(v) for v in totals.row(0)],
    })
    return (
        table.filter(pl.col("count") > 0)
        .sort(["count", "card"], descending=[True, False])
        .head(top_n)
        .with_columns((pl.col("count") / n_decks).round(2).alias("per_deck"))
    )


def cluster_backbones(
    decks: pl.DataFrame,
    labels: np.ndarray,
    top_n: int = TOP_N_CARDS,
    cluster_ids: Optional[Iterable[int]] = None,
) -> Dict[int, pl.DataFrame]:
    """Top cards for every requested cluster (all clusters by default)."""
    labels = _check_labels(decks, labels)
    if cluster_ids is None:
        cluster_ids = sorted(int(c) for c in np.unique(labels))
    return {int(c): top_cards_for_cluster(decks, labels, c, top_n) for c in cluster_ids}


def cluster_summary(decks: pl.DataFrame, labels: np.ndarray) -> pl.DataFrame:
    """Size, share of decks, games and (when known) win rate per cluster."""
    labels = _check_labels(decks, labels)
    frame = decks.with_columns(pl.Series("cluster", labels.astype(np.int64)))

    aggs = [pl.len().cast(pl.Int64).alias("decks")]
    if GAMES_COLUMN in frame.columns:
        aggs.append(pl.col(GAMES_COLUMN).sum())
    if WINS_COLUMN in frame.columns:
        aggs.append(pl.col(WINS_COLUMN).sum())

    summary = (
        frame.group_by("cluster")
        .agg(aggs)
        .sort("cluster")
        .with_columns((pl.col("decks") / frame.height).round(4).alias("share"))
    )
    if WINS_COLUMN in summary.columns:
        summary = summary.with_columns(
            (pl.col(WINS_COLUMN) / pl.col(GAMES_COLUMN)).round(4).alias("win_rate")
        )
    return summary


def backbone_overlap(backbones: Dict[int, pl.DataFrame]) -> Dict[str, List[int]]:
    """Cards that sit in the backbone of more than one cluster."""
    seen: Dict[str, List[int]] = {}
    for cluster_id, table in backbones.items():
        for card in table["card"].to_list():
            seen.setdefault(card, []).append(cluster_id)
    return {card: ids for card, ids in seen.items() if len(ids) > 1}


def print_cluster_report(
    decks: pl.DataFrame,
    labels: np.ndarray,
    cluster_ids: Optional[Iterable[int]] = None,
    top_n: int = TOP_N_CARDS,
) -> Dict[int, pl.DataFrame]:
    """
    Print the cluster overview and the top cards of the chosen clusters.

    Returns the backbone tables that were printed.
    """
    summary = cluster_summary(decks, labels)
    backbones = cluster_backbones(decks, labels, top_n, cluster_ids)

    print("=" * 60)
    print("DECK CLUSTER SUMMARY")
    print("=" * 60)
    print(f"Total decks: {decks.height}")
    print(f"Total clusters: {summary.height}")
    with pl.Config(tbl_rows=-1):
        print(summary)
    print()

    for cluster_id, table in backbones.items():
        size = int((np.asarray(labels) == cluster_id).sum())
        print(f"--- CLUSTER {cluster_id} ({size} decks) ---")
        print(f"Top {len(table)} cards:")
        with pl.Config(tbl_rows=-1, fmt_str_lengths=60):
            print(table)
        print()

    return backbones
