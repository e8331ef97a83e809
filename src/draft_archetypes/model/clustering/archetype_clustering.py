"""
Deck archetype clustering experiment for Premier Draft game data.

Loads deck compositions, reshapes them into a decks x cards matrix, runs
the SNN/Leiden clustering pipeline and reports the top cards per cluster.
"""

import argparse
import json
import logging
import sys
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, List, Optional

import matplotlib
import mlflow
import polars as pl

matplotlib.use("Agg")

from draft_archetypes.config import (
    BASIC_LANDS,
    EXCLUDED_CARDS,
    LEIDEN_RESOLUTION,
    MAX_PCS,
    N_NEIGHBORS,
    RANDOM_SEED,
    SAMPLE_SIZE,
    SET_CODE,
    TOP_N_CARDS,
    PipelineConfig,
)
from draft_archetypes.data_acquisition.load_game_data import load_deck_data
from draft_archetypes.model.clustering.graph_clustering import ClusteringResult, run_clustering_pipeline
from draft_archetypes.preprocessing.deck_preprocessor.deck_preprocessor import (
    DeckMatrix,
    DeckPreprocessor,
    transpose_deck_matrix,
)
from draft_archetypes.utils.clustering import (
    backbone_overlap,
    calculate_cluster_metrics,
    cluster_summary,
    print_cluster_report,
)
from draft_archetypes.utils.mlflow.mlflow_utils import (
    log_artifact,
    log_clustering_tags,
    log_dict_as_artifact,
    log_metrics,
    log_params,
    safe_json_serialize,
    setup_experiment,
)
from draft_archetypes.utils.plotting.plotting_utils import plot_cluster_embedding, plot_elbow
from draft_archetypes.utils.s3_utils import upload_file_to_s3

logger = logging.getLogger(__name__)


def write_outputs(
    config: PipelineConfig,
    matrix: DeckMatrix,
    result: ClusteringResult,
    backbones: Dict[int, Any],
    metrics: Dict[str, Any],
) -> List[Path]:
    """Write plots, labels and summaries to the output directory."""
    out_dir = Path(config.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    prefix = config.set_code.lower()
    written = []

    elbow_path = out_dir / f"{prefix}_pca_elbow.png"
    plot_elbow(result.variance_ratio, result.n_pcs, str(elbow_path),
               title=f"PCA Elbow Plot - {config.set_code} Decks")
    written.append(elbow_path)

    axis_label = "t-SNE" if result.embedding_method == "tsne" else "UMAP"
    embedding_path = out_dir / f"{prefix}_{result.embedding_method}_clusters.png"
    plot_cluster_embedding(
        result.embedding, result.labels, str(embedding_path),
        title=f"{axis_label} Projection of {config.set_code} Deck Clusters",
        axis_label=axis_label,
    )
    written.append(embedding_path)

    labels_path = out_dir / f"{prefix}_deck_clusters.csv"
    matrix.decks.with_row_index("deck").insert_column(1, pl.Series("cluster", result.labels)).write_csv(labels_path)
    written.append(labels_path)

    summary = {
        "set_code": config.set_code,
        "n_decks": matrix.n_decks,
        "n_cards": matrix.n_cards,
        "n_pcs": result.n_pcs,
        "metrics": metrics,
        "clusters": cluster_summary(matrix.decks, result.labels).to_dicts(),
        "backbones": {str(k): v.to_dicts() for k, v in backbones.items()},
        "shared_backbone_cards": backbone_overlap(backbones),
    }
    summary_path = out_dir / f"{prefix}_cluster_summary.json"
    with open(summary_path, "w") as f:
        json.dump(safe_json_serialize(summary), f, indent=2)
    written.append(summary_path)

    if config.export_matrix:
        matrix_path = out_dir / f"{prefix}_card_by_deck_counts.csv"
        transpose_deck_matrix(matrix.decks).write_csv(matrix_path)
        written.append(matrix_path)

    logger.info(f"Wrote {len(written)} output files to {out_dir}")
    return written


def run_archetype_experiment(config: PipelineConfig) -> Dict[str, Any]:
    """Run the full load -> preprocess -> cluster -> inspect -> report pipeline."""
    if config.use_mlflow:
        setup_experiment(config.experiment_name, config.tracking_uri)
        run_context = mlflow.start_run(run_name=f"{config.set_code.lower()}_leiden")
    else:
        run_context = nullcontext()

    with run_context:
        if config.use_mlflow:
            log_clustering_tags(config.set_code, config.embedding)
            log_params(config.to_params())

        logger.info(f"Loading deck data from {config.input_path}")
        df = load_deck_data(config.input_path)

        preprocessor = DeckPreprocessor(
            excluded_cards=config.excluded_cards,
            basic_lands=config.basic_lands,
            sample_size=config.sample_size,
            random_state=config.seed,
        )
        matrix = preprocessor.fit_transform(df)
        logger.info(f"Deck matrix ready: {matrix.n_decks} decks x {matrix.n_cards} cards")

        result = run_clustering_pipeline(
            matrix.counts,
            matrix.card_names,
            max_pcs=config.max_pcs,
            pc_selection=config.pc_selection,
            variance_threshold=config.variance_threshold,
            n_neighbors=config.n_neighbors,
            snn_prune=config.snn_prune,
            resolution=config.resolution,
            embedding=config.embedding,
            seed=config.seed,
        )

        backbones = print_cluster_report(
            matrix.decks, result.labels, config.inspect_clusters, config.top_n
        )

        metrics = calculate_cluster_metrics(result.labels, matrix.decks, result.silhouette)
        metrics.update({
            "num_games": preprocessor.n_games_,
            "num_distinct_decks": preprocessor.n_distinct_decks_,
            "num_features": matrix.n_cards,
            "n_pcs": result.n_pcs,
            "explained_variance_ratio": float(result.variance_ratio[:result.n_pcs].sum()),
        })

        written = write_outputs(config, matrix, result, backbones, metrics)

        if config.use_mlflow:
            log_metrics(metrics)
            for path in written:
                subdir = "plots" if path.suffix == ".png" else "results"
                log_artifact(str(path), subdir)
            log_dict_as_artifact(config.to_params(), "pipeline_config.json", "config")

        if config.s3_output_prefix:
            for path in written:
                upload_file_to_s3(str(path), config.s3_output_prefix)

        logger.info(f"Clustering run completed for {config.set_code}")
        return {
            "matrix": matrix,
            "result": result,
            "backbones": backbones,
            "metrics": metrics,
            "outputs": written,
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Cluster draft decks into archetypes")
    parser.add_argument("--input", help="Game data CSV path or s3:// URI (default: game-data.<SET>.PremierDraft.csv)")
    parser.add_argument("--set-code", default=SET_CODE, help=f"Draft set code (default: {SET_CODE})")
    parser.add_argument("--sample-size", type=int, default=SAMPLE_SIZE,
                        help=f"Decks to sample after deduplication, 0 keeps all (default: {SAMPLE_SIZE})")
    parser.add_argument("--seed", type=int, default=RANDOM_SEED, help="Random seed")
    parser.add_argument("--exclude-card", action="append", default=[],
                        help="Additional card to drop from the vocabulary (repeatable)")
    parser.add_argument("--keep-basics", action="store_true", help="Keep basic lands as features")
    parser.add_argument("--max-pcs", type=int, default=MAX_PCS, help="Principal components to compute")
    parser.add_argument("--pc-selection", choices=["elbow", "variance"], default="elbow",
                        help="How many PCs feed the neighbor graph")
    parser.add_argument("--n-neighbors", type=int, default=N_NEIGHBORS, help="k for the SNN graph")
    parser.add_argument("--resolution", type=float, default=LEIDEN_RESOLUTION, help="Leiden resolution")
    parser.add_argument("--embedding", choices=["tsne", "umap"], default="tsne", help="2-D embedding method")
    parser.add_argument("--top-n", type=int, default=TOP_N_CARDS, help="Cards listed per cluster")
    parser.add_argument("--inspect", type=int, nargs="+", metavar="CLUSTER",
                        help="Only print these cluster ids (default: all)")
    parser.add_argument("--output-dir", default="outputs", help="Directory for plots and summaries")
    parser.add_argument("--export-matrix", action="store_true", help="Also write the cards x decks count matrix")
    parser.add_argument("--no-mlflow", action="store_true", help="Disable MLflow tracking")
    parser.add_argument("--s3-output-prefix", help="Upload outputs under this s3://bucket/prefix")
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    excluded = tuple(EXCLUDED_CARDS.get(args.set_code, ())) + tuple(args.exclude_card)
    return PipelineConfig.for_set(
        args.set_code,
        input_path=args.input or f"game-data.{args.set_code}.PremierDraft.csv",
        sample_size=args.sample_size or None,
        seed=args.seed,
        excluded_cards=excluded,
        basic_lands=() if args.keep_basics else BASIC_LANDS,
        max_pcs=args.max_pcs,
        pc_selection=args.pc_selection,
        n_neighbors=args.n_neighbors,
        resolution=args.resolution,
        embedding=args.embedding,
        top_n=args.top_n,
        inspect_clusters=args.inspect,
        output_dir=args.output_dir,
        export_matrix=args.export_matrix,
        use_mlflow=not args.no_mlflow,
        s3_output_prefix=args.s3_output_prefix,
    )


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        run_archetype_experiment(config)
    except Exception:
        logger.exception("Deck archetype clustering failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
