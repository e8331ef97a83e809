import io
import json

import numpy as np
import pytest

from draft_archetypes.utils import s3_utils
from draft_archetypes.utils.mlflow import mlflow_utils
from draft_archetypes.utils.plotting.plotting_utils import plot_cluster_embedding, plot_elbow


class RecordingMlflow:
    def __init__(self):
        self.params, self.metrics, self.tags, self.artifacts = {}, {}, {}, []

    def log_param(self, key, value):
        self.params[key] = value

    def log_metric(self, key, value, step=None):
        self.metrics[key] = value

    def set_tag(self, key, value):
        self.tags[key] = value

    def log_artifact(self, local_path, artifact_path=None):
        with open(local_path) as f:
            self.artifacts.append((artifact_path, f.read()))


@pytest.fixture
def fake_mlflow(monkeypatch):
    fake = RecordingMlflow()
    monkeypatch.setattr(mlflow_utils, "mlflow", fake)
    return fake


def test_safe_json_serialize_numpy_values():
    data = {
        1: np.int64(3),
        "rate": np.float32(0.5),
        "flag": np.bool_(True),
        "labels": np.array([0, 1]),
        "nested": [(np.int8(1), "Squash")],
    }
    out = mlflow_utils.safe_json_serialize(data)
    assert out == {"1": 3, "rate": 0.5, "flag": True, "labels": [0, 1], "nested": [[1, "Squash"]]}
    json.dumps(out)


def test_log_metrics_skips_non_numeric(fake_mlflow):
    mlflow_utils.log_metrics({"n_clusters": np.int64(4), "silhouette_score": 0.3,
                              "set_code": "KHM", "flag": True})
    assert fake_mlflow.metrics == {"n_clusters": 4, "silhouette_score": 0.3}


def test_log_params_and_tags(fake_mlflow):
    mlflow_utils.log_params({"n_neighbors": np.int64(20), "set_code": "KHM"})
    mlflow_utils.log_clustering_tags("KHM", "tsne", stage="test")

    assert fake_mlflow.params == {"n_neighbors": 20, "set_code": "KHM"}
    assert fake_mlflow.tags["dataset"] == "khm_premier_draft_decks"
    assert fake_mlflow.tags["stage"] == "test"
    assert fake_mlflow.tags["embedding"] == "tsne"


def test_log_dict_as_artifact(fake_mlflow):
    mlflow_utils.log_dict_as_artifact({"n_pcs": np.int64(7)}, "summary.json", "results")
    subdir, content = fake_mlflow.artifacts[0]
    assert subdir == "results"
    assert json.loads(content) == {"n_pcs": 7}


def test_split_s3_uri():
    assert s3_utils.split_s3_uri("s3://draft-data/reports/khm") == ("draft-data", "reports/khm")
    with pytest.raises(ValueError):
        s3_utils.split_s3_uri("draft-data/reports")
    with pytest.raises(ValueError):
        s3_utils.split_s3_uri("s3://draft-data")


class FakeS3Client:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def get_object(self, Bucket, Key):
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)][0])}


def test_upload_file_and_read_back(tmp_path):
    client = FakeS3Client()
    path = tmp_path / "khm_deck_clusters.csv"
    path.write_text("deck,cluster,Squash\n0,1,2\n1,0,0\n")

    uri = s3_utils.upload_file_to_s3(str(path), "s3://draft-data/reports/khm/", s3_client=client)
    assert uri == "s3://draft-data/reports/khm/khm_deck_clusters.csv"
    assert client.objects[("draft-data", "reports/khm/khm_deck_clusters.csv")][1] == "text/csv"

    df = s3_utils.read_csv_from_s3("draft-data", "reports/khm/khm_deck_clusters.csv",
                                   columns=["cluster", "Squash"], s3_client=client)
    assert df.columns == ["cluster", "Squash"]
    assert df["Squash"].to_list() == [2, 0]


def test_plot_elbow_writes_file(tmp_path):
    path = tmp_path / "elbow.png"
    cumulative = plot_elbow([0.5, 0.3, 0.2], n_pcs=2, output_path=str(path))
    assert path.exists()
    assert cumulative[-1] == pytest.approx(1.0)


def test_plot_cluster_embedding(tmp_path):
    rng = np.random.default_rng(0)
    labels = np.repeat([0, 1, 2], 10)
    xy = rng.normal(size=(30, 2)) + labels[:, None] * 5
    path = tmp_path / "tsne.png"
    plot_cluster_embedding(xy, labels, str(path))
    assert path.exists()

    with pytest.raises(ValueError):
        plot_cluster_embedding(xy[:5], labels)
