"""
Clustering utilities for draft deck analysis.
"""

from .clustering_metrics_summary import calculate_cluster_metrics

from .cluster_evaluation import (
    top_cards_for_cluster,
    cluster_backbones,
    cluster_summary,
    backbone_overlap,
    print_cluster_report,
)

__all__ = [
    'calculate_cluster_metrics',
    'top_cards_for_cluster',
    'cluster_backbones',
    'cluster_summary',
    'backbone_overlap',
    'print_cluster_report',
]
