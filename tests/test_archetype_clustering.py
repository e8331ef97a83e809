import json

import polars as pl
import pytest

from draft_archetypes.config import EXCLUDED_CARDS, PipelineConfig
from draft_archetypes.data_acquisition.load_game_data import select_deck_columns
from draft_archetypes.model.clustering import archetype_clustering
from draft_archetypes.model.clustering.archetype_clustering import (
    build_parser,
    config_from_args,
    main,
    run_archetype_experiment,
)
from draft_archetypes.preprocessing.deck_preprocessor import DeckPreprocessor


def test_config_from_args_defaults():
    config = config_from_args(build_parser().parse_args([]))
    assert config.input_path == "game-data.KHM.PremierDraft.csv"
    assert config.sample_size == 5000
    assert "Tibalt, Cosmic Impostor" in config.excluded_cards
    assert "Plains" in config.basic_lands
    assert config.use_mlflow


def test_config_from_args_overrides():
    args = build_parser().parse_args([
        "--set-code", "STX", "--sample-size", "0", "--exclude-card", "Mascot Exhibition",
        "--keep-basics", "--inspect", "0", "3", "--no-mlflow", "--embedding", "umap",
    ])
    config = config_from_args(args)
    assert config.input_path == "game-data.STX.PremierDraft.csv"
    assert config.sample_size is None
    assert config.excluded_cards == ("Mascot Exhibition",)
    assert config.basic_lands == ()
    assert config.inspect_clusters == [0, 3]
    assert not config.use_mlflow
    assert config.embedding == "umap"


def test_exclude_card_extends_set_defaults(planted_games):
    args = build_parser().parse_args(["--exclude-card", "Generic Card 0", "--no-mlflow"])
    config = config_from_args(args)

    assert config.excluded_cards == EXCLUDED_CARDS["KHM"] + ("Generic Card 0",)

    frame, _ = planted_games
    matrix = DeckPreprocessor(
        excluded_cards=config.excluded_cards,
        basic_lands=config.basic_lands,
        sample_size=None,
    ).fit_transform(select_deck_columns(frame))
    assert "Generic Card 0" not in matrix.card_names
    assert "Hakka, Whispering Raven" not in matrix.card_names
    assert "Generic Card 1" in matrix.card_names


def test_pipeline_config_validation():
    with pytest.raises(ValueError):
        PipelineConfig(sample_size=0)
    with pytest.raises(ValueError):
        PipelineConfig(pc_selection="jackstraw")
    with pytest.raises(ValueError):
        PipelineConfig(embedding="pca")


def test_main_end_to_end(game_csv, tmp_path, capsys):
    out_dir = tmp_path / "outputs"
    code = main([
        "--input", str(game_csv),
        "--sample-size", "0",
        "--output-dir", str(out_dir),
        "--export-matrix",
        "--inspect", "0", "1",
        "--no-mlflow",
    ])
    assert code == 0

    printed = capsys.readouterr().out
    assert "CLUSTER 0 (" in printed
    assert "CLUSTER 1 (" in printed

    for name in ["khm_pca_elbow.png", "khm_tsne_clusters.png", "khm_deck_clusters.csv",
                 "khm_cluster_summary.json", "khm_card_by_deck_counts.csv"]:
        assert (out_dir / name).exists(), name

    labels = pl.read_csv(out_dir / "khm_deck_clusters.csv")
    assert labels.columns[:2] == ["deck", "cluster"]
    assert "Plains" not in labels.columns
    assert "Hakka, Whispering Raven" not in labels.columns
    assert labels.height == 90
    assert labels["games"].sum() == 95

    summary = json.loads((out_dir / "khm_cluster_summary.json").read_text())
    assert summary["n_decks"] == 90
    assert set(summary["backbones"]) == {"0", "1"}
    assert len(summary["backbones"]["0"]) <= 20

    matrix = pl.read_csv(out_dir / "khm_card_by_deck_counts.csv")
    assert matrix.columns[0] == "card"
    assert matrix.width == 91


def test_main_missing_input_returns_error(tmp_path):
    code = main(["--input", str(tmp_path / "missing.csv"), "--no-mlflow",
                 "--output-dir", str(tmp_path / "out")])
    assert code == 1


def test_run_archetype_experiment_uploads_outputs(game_csv, tmp_path, monkeypatch):
    uploaded = []
    monkeypatch.setattr(archetype_clustering, "upload_file_to_s3",
                        lambda path, prefix: uploaded.append((path, prefix)))
    config = PipelineConfig(
        input_path=str(game_csv),
        sample_size=60,
        output_dir=str(tmp_path / "out"),
        use_mlflow=False,
        s3_output_prefix="s3://draft-data/reports/khm",
    )
    results = run_archetype_experiment(config)

    assert results["matrix"].n_decks == 60
    assert len(results["result"].labels) == 60
    assert len(uploaded) == len(results["outputs"])
    assert all(prefix == "s3://draft-data/reports/khm" for _, prefix in uploaded)


def test_run_archetype_experiment_with_local_mlflow(game_csv, tmp_path, monkeypatch):
    import mlflow

    # default artifact root is relative to the working directory
    monkeypatch.chdir(tmp_path)
    config = PipelineConfig(
        input_path=str(game_csv),
        sample_size=None,
        output_dir=str(tmp_path / "out"),
        tracking_uri=f"sqlite:///{tmp_path / 'mlflow.db'}",
        experiment_name="draft_archetypes_test",
    )
    results = run_archetype_experiment(config)

    run = mlflow.search_runs(experiment_names=["draft_archetypes_test"], output_format="list")[0]
    assert run.data.params["set_code"] == "KHM"
    assert run.data.metrics["n_clusters"] == results["metrics"]["n_clusters"]
    assert run.data.tags["algorithm"] == "leiden_snn"
