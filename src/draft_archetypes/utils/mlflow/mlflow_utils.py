import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional, Union

import mlflow
import numpy as np

from draft_archetypes.config import MLFLOW_EXPERIMENT, MLFLOW_TRACKING_URI

logger = logging.getLogger(__name__)


# === General Utilities ===
def safe_json_serialize(obj):
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {str(k): safe_json_serialize(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [safe_json_serialize(item) for item in obj]
    elif hasattr(obj, 'item'):
        return obj.item()
    return obj


def log_params(params: Dict[str, Any]) -> None:
    for key, value in params.items():
        value = safe_json_serialize(value)
        mlflow.log_param(key, value)
    logger.info(f"Logged {len(params)} parameters to MLflow")


def log_metrics(metrics: Dict[str, Union[int, float]], step: Optional[int] = None) -> None:
    logged = 0
    for key, value in metrics.items():
        value = safe_json_serialize(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            mlflow.log_metric(key, value, step=step)
            logged += 1
    logger.info(f"Logged {logged} metrics to MLflow")


def log_tags(tags: Dict[str, str]) -> None:
    for key, value in tags.items():
        mlflow.set_tag(key, str(value))
    logger.info(f"Logged {len(tags)} tags to MLflow")


def log_artifact(local_path: str, artifact_path: Optional[str] = None) -> None:
    mlflow.log_artifact(local_path, artifact_path)
    logger.info(f"Logged artifact from {local_path} to MLflow" + (f" under {artifact_path}" if artifact_path else ""))


def log_dict_as_artifact(data: Dict[str, Any], filename: str, artifact_subdir: str) -> None:
    with tempfile.TemporaryDirectory() as tmp_dir:
        path = os.path.join(tmp_dir, filename)
        with open(path, 'w') as f:
            json.dump(safe_json_serialize(data), f, indent=2)
        mlflow.log_artifact(path, artifact_path=artifact_subdir)


# === Experiment Setup ===
def setup_experiment(
    experiment_name: str = MLFLOW_EXPERIMENT,
    tracking_uri: str = MLFLOW_TRACKING_URI,
) -> str:
    mlflow.set_tracking_uri(tracking_uri)
    experiment = mlflow.get_experiment_by_name(experiment_name)
    if experiment is None:
        experiment_id = mlflow.create_experiment(experiment_name)
        logger.info(f"Created new experiment: {experiment_name}")
    else:
        experiment_id = experiment.experiment_id
        logger.info(f"Using existing experiment: {experiment_name}")
    mlflow.set_experiment(experiment_name)
    return experiment_id


# === Clustering Utilities ===
def log_clustering_tags(set_code: str, embedding: str, stage: str = "exploration",
                        version: str = "v1.0", **kwargs) -> None:
    tags = {
        "model_type": "clustering",
        "algorithm": "leiden_snn",
        "dataset": f"{set_code.lower()}_premier_draft_decks",
        "preprocessing": "lognormalize_scale_pca",
        "embedding": embedding,
        "version": version,
        "purpose": "deck_archetypes",
        "stage": stage,
    }
    tags.update(kwargs)
    log_tags(tags)
