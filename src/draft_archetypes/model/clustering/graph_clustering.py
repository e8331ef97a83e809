"""
Graph-based clustering of deck count vectors with the single-cell toolkit.

Decks play the role of cells and cards the role of genes: counts are
library-size normalized, log transformed and scaled, reduced with PCA,
linked into a shared-nearest-neighbor graph and partitioned with Leiden.
"""

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

import anndata as ad
import numpy as np
import pandas as pd
import scanpy as sc
from scipy import sparse
from sklearn.manifold import TSNE
from sklearn.metrics import silhouette_score
from sklearn.neighbors import NearestNeighbors

from draft_archetypes.config import (
    LEIDEN_RESOLUTION,
    MAX_PCS,
    N_NEIGHBORS,
    RANDOM_SEED,
    SNN_PRUNE,
    TSNE_PERPLEXITY,
    UMAP_MIN_DIST,
    UMAP_N_NEIGHBORS,
    VARIANCE_THRESHOLD,
)

logger = logging.getLogger(__name__)

TARGET_SUM = 1e4
SCALE_MAX_VALUE = 10


@dataclass
class ClusteringResult:
    labels: np.ndarray
    pca_coords: np.ndarray          # decks x selected PCs
    variance_ratio: np.ndarray      # for every computed PC
    n_pcs: int
    embedding: np.ndarray           # decks x 2
    embedding_method: str
    silhouette: Optional[float]

    @property
    def n_clusters(self) -> int:
        return len(np.unique(self.labels))

    def cluster_ids(self) -> List[int]:
        return sorted(int(c) for c in np.unique(self.labels))


def build_anndata(
    counts: np.ndarray,
    card_names: Sequence[str],
    deck_ids: Optional[Sequence[str]] = None,
) -> ad.AnnData:
    """Decks as observations, cards as variables; raw counts kept in a layer."""
    if counts.ndim != 2 or counts.shape[1] != len(card_names):
        raise ValueError(
            f"Count matrix shape {counts.shape} does not match {len(card_names)} card names"
        )
    if (counts < 0).any():
        raise ValueError("Card counts must be non-negative")

    if deck_ids is None:
        deck_ids = [f"deck_{i}" for i in range(counts.shape[0])]
    adata = ad.AnnData(
        X=counts.astype(np.float32),
        obs=pd.DataFrame(index=list(deck_ids)),
        var=pd.DataFrame(index=list(card_names)),
    )
    adata.layers["counts"] = counts.copy()
    return adata


def normalize_and_scale(adata: ad.AnnData) -> ad.AnnData:
    sc.pp.normalize_total(adata, target_sum=TARGET_SUM)
    sc.pp.log1p(adata)
    sc.pp.scale(adata, max_value=SCALE_MAX_VALUE)
    return adata


def run_pca(adata: ad.AnnData, max_pcs: int = MAX_PCS, seed: int = RANDOM_SEED) -> np.ndarray:
    """Compute PCA in place and return the explained variance ratio per PC."""
    n_comps = min(max_pcs, adata.n_obs - 1, adata.n_vars - 1)
    if n_comps < 2:
        raise ValueError(f"Too few decks or cards for PCA ({adata.n_obs} x {adata.n_vars})")
    sc.tl.pca(adata, n_comps=n_comps, random_state=seed)
    return np.asarray(adata.uns["pca"]["variance_ratio"])


def select_n_pcs(
    variance_ratio: Sequence[float],
    method: Literal["elbow", "variance"] = "elbow",
    threshold: float = VARIANCE_THRESHOLD,
) -> int:
    """
    Pick how many principal components to keep.

    ``elbow`` finds the point of the scree curve farthest from the chord
    joining its first and last points (both axes rescaled to [0, 1]) and
    keeps the components before it.
    ``variance`` takes the fewest components whose cumulative explained
    variance reaches ``threshold``. The result is always between 2 and the
    number of computed components.
    """
    y = np.asarray(variance_ratio, dtype=float)
    n = len(y)
    if n < 2:
        raise ValueError("Need at least two principal components to choose from")

    if method == "variance":
        k = int(np.searchsorted(np.cumsum(y), threshold)) + 1
    elif method == "elbow":
        span = y.max() - y.min()
        if span == 0:
            return n
        x_norm = np.arange(n) / (n - 1)
        y_norm = (y - y.min()) / span
        # Chord from (0, y_norm[0]) to (1, y_norm[-1])
        dx, dy = 1.0, y_norm[-1] - y_norm[0]
        dist = np.abs(dy * x_norm - dx * (y_norm - y_norm[0])) / np.hypot(dx, dy)
        k = int(np.argmax(dist))
    else:
        raise ValueError(f"Unknown PC selection method '{method}'")

    return int(min(max(k, 2), n))


def nearest_neighbor_indices(coords: np.ndarray, n_neighbors: int = N_NEIGHBORS) -> np.ndarray:
    """k nearest neighbors of every deck, the deck itself first."""
    n = coords.shape[0]
    k = min(n_neighbors, n)
    nn = NearestNeighbors(n_neighbors=k).fit(coords)
    _, indices = nn.kneighbors(coords)
    # identical decks tie at distance 0 and can push a deck out of its own row
    others = np.array([row[row != i][:k - 1] for i, row in enumerate(indices)], dtype=indices.dtype)
    return np.column_stack([np.arange(n, dtype=indices.dtype), others])


def shared_nearest_neighbors(knn_indices: np.ndarray, prune: float = SNN_PRUNE) -> sparse.csr_matrix:
    """
    Jaccard-weighted shared nearest neighbor graph.

    Two decks are linked with weight ``|N(a) & N(b)| / |N(a) | N(b)|`` where
    N includes the deck itself; links weaker than ``prune`` are removed.
    """
    n, k = knn_indices.shape
    rows = np.repeat(np.arange(n), k)
    membership = sparse.csr_matrix(
        (np.ones(n * k, dtype=np.float64), (rows, knn_indices.ravel())), shape=(n, n)
    )
    shared = (membership @ membership.T).tocoo()
    jaccard = shared.data / (2 * k - shared.data)
    keep = jaccard >= prune
    return sparse.csr_matrix(
        (jaccard[keep], (shared.row[keep], shared.col[keep])), shape=(n, n)
    )


def detect_communities(
    adata: ad.AnnData,
    adjacency: sparse.csr_matrix,
    resolution: float = LEIDEN_RESOLUTION,
    seed: int = RANDOM_SEED,
) -> np.ndarray:
    """Leiden communities over the SNN graph, relabelled so 0 is the largest."""
    adata.obsp["snn"] = adjacency
    sc.tl.leiden(
        adata,
        resolution=resolution,
        random_state=seed,
        obsp="snn",
        key_added="cluster",
        flavor="igraph",
        directed=False,
        n_iterations=2,
    )
    labels = relabel_by_size(adata.obs["cluster"].astype(int).to_numpy())
    adata.obs["cluster"] = pd.Categorical(labels)
    return labels


def relabel_by_size(labels: np.ndarray) -> np.ndarray:
    """Renumber clusters 0..k-1 by descending size, ties by original label."""
    ids, sizes = np.unique(labels, return_counts=True)
    order = ids[np.lexsort((ids, -sizes))]
    mapping = {old: new for new, old in enumerate(order)}
    return np.array([mapping[label] for label in labels], dtype=np.int64)


def embed_2d(
    coords: np.ndarray,
    method: Literal["tsne", "umap"] = "tsne",
    seed: int = RANDOM_SEED,
    perplexity: float = TSNE_PERPLEXITY,
) -> np.ndarray:
    n = coords.shape[0]
    if method == "tsne":
        # perplexity must stay below the number of samples
        perplexity = max(1.0, min(perplexity, (n - 1) / 3))
        logger.info(f"Projecting to 2D using t-SNE (perplexity={perplexity:.1f})...")
        return TSNE(n_components=2, perplexity=perplexity, init="pca", random_state=seed).fit_transform(coords)
    if method == "umap":
        import umap

        logger.info("Projecting to 2D using UMAP...")
        reducer = umap.UMAP(
            n_components=2,
            n_neighbors=min(UMAP_N_NEIGHBORS, n - 1),
            min_dist=UMAP_MIN_DIST,
            random_state=seed,
        )
        return reducer.fit_transform(coords)
    raise ValueError(f"Unknown embedding method '{method}'")


def run_clustering_pipeline(
    counts: np.ndarray,
    card_names: Sequence[str],
    max_pcs: int = MAX_PCS,
    pc_selection: Literal["elbow", "variance"] = "elbow",
    variance_threshold: float = VARIANCE_THRESHOLD,
    n_neighbors: int = N_NEIGHBORS,
    snn_prune: float = SNN_PRUNE,
    resolution: float = LEIDEN_RESOLUTION,
    embedding: Literal["tsne", "umap"] = "tsne",
    seed: int = RANDOM_SEED,
) -> ClusteringResult:
    adata = build_anndata(counts, card_names)
    logger.info(f"AnnData built: {adata.n_obs} decks x {adata.n_vars} cards")

    normalize_and_scale(adata)
    variance_ratio = run_pca(adata, max_pcs=max_pcs, seed=seed)
    n_pcs = select_n_pcs(variance_ratio, pc_selection, variance_threshold)
    logger.info(
        f"Using {n_pcs} of {len(variance_ratio)} PCs "
        f"({variance_ratio[:n_pcs].sum():.3f} of variance, method={pc_selection})"
    )
    coords = adata.obsm["X_pca"][:, :n_pcs]

    knn = nearest_neighbor_indices(coords, n_neighbors)
    snn = shared_nearest_neighbors(knn, prune=snn_prune)
    logger.info(f"SNN graph: {snn.nnz} edges (k={knn.shape[1]}, prune={snn_prune:.4f})")

    labels = detect_communities(adata, snn, resolution=resolution, seed=seed)
    n_clusters = len(np.unique(labels))
    logger.info(f"Leiden found {n_clusters} clusters (resolution={resolution})")

    silhouette = None
    if 2 <= n_clusters < len(labels):
        silhouette = float(silhouette_score(coords, labels))
        logger.info(f"Silhouette Score: {silhouette:.4f}")

    xy = embed_2d(coords, method=embedding, seed=seed)

    return ClusteringResult(
        labels=labels,
        pca_coords=coords,
        variance_ratio=variance_ratio,
        n_pcs=n_pcs,
        embedding=xy,
        embedding_method=embedding,
        silhouette=silhouette,
    )
