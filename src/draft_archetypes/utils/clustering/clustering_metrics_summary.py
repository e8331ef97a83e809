"""
Clustering metrics summary for draft deck data.
"""

from typing import Dict, Optional

import numpy as np
import polars as pl

from draft_archetypes.preprocessing.deck_preprocessor.deck_preprocessor import (
    GAMES_COLUMN,
    WINS_COLUMN,
)


def calculate_cluster_metrics(
    labels: np.ndarray,
    decks: Optional[pl.DataFrame] = None,
    silhouette: Optional[float] = None,
) -> Dict[str, float]:
    """
    Calculate summary metrics for a deck clustering.

    Args:
        labels: Cluster label per deck
        decks: Optional deck table with games/wins for win-rate spread
        silhouette: Silhouette score computed on the PCA coordinates

    Returns:
        Dictionary with numeric metrics
    """
    labels = np.asarray(labels)
    metrics: Dict[str, float] = {}

    _, sizes = np.unique(labels, return_counts=True)
    metrics['n_clusters'] = int(len(sizes))
    metrics['n_decks'] = int(len(labels))

    if len(sizes):
        metrics['avg_cluster_size'] = float(np.mean(sizes))
        metrics['std_cluster_size'] = float(np.std(sizes))
        metrics['min_cluster_size'] = int(np.min(sizes))
        metrics['max_cluster_size'] = int(np.max(sizes))
        metrics['cluster_size_cv'] = float(np.std(sizes) / np.mean(sizes))
        metrics['largest_cluster_share'] = float(np.max(sizes) / len(labels))

    if silhouette is not None:
        metrics['silhouette_score'] = float(silhouette)

    if decks is not None and WINS_COLUMN in decks.columns:
        frame = decks.select([GAMES_COLUMN, WINS_COLUMN]).with_columns(pl.Series("cluster", labels))
        rates = (
            frame.group_by("cluster")
            .agg(pl.col(WINS_COLUMN).sum() / pl.col(GAMES_COLUMN).sum())
            .get_column(WINS_COLUMN)
            .to_numpy()
        )
        total_games = decks[GAMES_COLUMN].sum()
        if total_games:
            metrics['overall_win_rate'] = float(decks[WINS_COLUMN].sum() / total_games)
        if len(rates) > 1:
            metrics['win_rate_range'] = float(rates.max() - rates.min())
            metrics['win_rate_std'] = float(rates.std())

    return metrics
