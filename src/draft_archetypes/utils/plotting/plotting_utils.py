from typing import Optional, Sequence

import matplotlib.patches as mpatches
import matplotlib.pyplot as plt
import numpy as np


def plot_elbow(
    variance_ratio: Sequence[float],
    n_pcs: int,
    output_path: Optional[str] = None,
    title: str = "PCA Elbow Plot",
) -> np.ndarray:
    """
    Plots explained variance per principal component and marks the selected count.

    Args:
        variance_ratio: Explained variance ratio of every computed component.
        n_pcs (int): Number of components kept for the neighbor graph.
        output_path (str, optional): If provided, saves the plot to this path.
        title (str): Title of the plot.

    Returns:
        np.ndarray: Cumulative explained variance values.
    """
    ratio = np.asarray(variance_ratio, dtype=float)
    if ratio.size == 0:
        raise ValueError("variance_ratio is empty")
    cumulative_variance = np.cumsum(ratio)
    components = range(1, len(ratio) + 1)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.plot(components, ratio, marker='o', label='Explained variance')
    ax.plot(components, cumulative_variance, marker='.', linestyle=':', label='Cumulative')
    ax.axvline(x=n_pcs, color='r', linestyle='--', label=f'Selected: {n_pcs} PCs')
    ax.set_xlabel("Principal Component")
    ax.set_ylabel("Explained Variance Ratio")
    ax.set_title(title)
    ax.grid(True)
    ax.legend()
    fig.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)

    return cumulative_variance


def plot_cluster_embedding(
    embedding: np.ndarray,
    labels: np.ndarray,
    output_path: Optional[str] = None,
    title: str = "t-SNE Projection of Deck Clusters",
    axis_label: str = "t-SNE",
) -> None:
    """Scatter of the 2-D embedding coloured by cluster, each cluster labelled at its median."""
    labels = np.asarray(labels)
    if embedding.shape != (len(labels), 2):
        raise ValueError(f"Embedding shape {embedding.shape} does not match {len(labels)} labels")

    unique_labels = np.unique(labels)
    cmap = plt.get_cmap('tab20' if len(unique_labels) > 10 else 'tab10')
    norm = plt.Normalize(vmin=unique_labels.min(), vmax=max(unique_labels.max(), unique_labels.min() + 1))

    fig, ax = plt.subplots(figsize=(10, 8))
    ax.scatter(embedding[:, 0], embedding[:, 1], c=labels, cmap=cmap, norm=norm, s=6, alpha=0.8)

    for cluster_id in unique_labels:
        center = np.median(embedding[labels == cluster_id], axis=0)
        ax.text(
            center[0], center[1], str(cluster_id),
            fontsize=12, fontweight='bold', ha='center', va='center',
            bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.7),
        )

    legend_patches = [mpatches.Patch(color=cmap(norm(i)), label=f"Cluster {i}") for i in unique_labels]
    ax.legend(handles=legend_patches, title="Clusters", bbox_to_anchor=(1.05, 1), loc='upper left')
    ax.set_title(title)
    ax.set_xlabel(f"{axis_label} 1")
    ax.set_ylabel(f"{axis_label} 2")
    ax.grid(True)
    fig.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)
