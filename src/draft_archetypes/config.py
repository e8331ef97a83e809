"""
Pipeline parameters for draft deck archetype clustering.
"""

import os
from dataclasses import dataclass, field
from typing import Literal, Optional, Sequence, Tuple

# Parameters
S3_BUCKET = os.environ.get("S3_BUCKET", "draft-data")
MLFLOW_TRACKING_URI = os.environ.get("MLFLOW_TRACKING_URI", "http://localhost:5000")
MLFLOW_EXPERIMENT = "/draft_deck_archetypes"

SET_CODE = "KHM"
GAME_DATA_FILE = f"game-data.{SET_CODE}.PremierDraft.csv"
DECK_COLUMN_PREFIX = "deck_"
OUTCOME_COLUMN = "won"

RANDOM_SEED = 42
SAMPLE_SIZE = 5000  # decks kept after deduplication
MIN_DECKS = 10

MAX_PCS = 50
PC_SELECTION = "elbow"  # or "variance"
VARIANCE_THRESHOLD = 0.9
N_NEIGHBORS = 20
SNN_PRUNE = 1 / 15  # Jaccard overlap below this is dropped from the graph
LEIDEN_RESOLUTION = 0.8
TSNE_PERPLEXITY = 30
UMAP_N_NEIGHBORS = 15
UMAP_MIN_DIST = 0.1

TOP_N_CARDS = 20

# Not limited-supply picks; snow-covered basics come from the booster land slot and stay
BASIC_LANDS = ("Plains", "Island", "Swamp", "Mountain", "Forest")

# Back faces of modal double-faced cards show up as their own columns.
# Promotional or other non-booster columns are added per run with --exclude-card.
EXCLUDED_CARDS = {
    "KHM": (
        "Hakka, Whispering Raven",
        "Harnfik, Nightstalker",
        "The Omenkeel",
        "Throne of Death",
        "The Prismatic Bridge",
        "Sword of the Realms",
        "Kaldring, the Rimestaff",
        "The Ringhart Crest",
        "Valkmira, Protector's Shield",
        "Tergrid's Lantern",
        "Toralf's Hammer",
        "Tibalt, Cosmic Impostor",
    ),
}


@dataclass
class PipelineConfig:
    input_path: str = GAME_DATA_FILE
    set_code: str = SET_CODE
    sample_size: Optional[int] = SAMPLE_SIZE
    seed: int = RANDOM_SEED
    excluded_cards: Tuple[str, ...] = EXCLUDED_CARDS[SET_CODE]
    basic_lands: Tuple[str, ...] = BASIC_LANDS
    max_pcs: int = MAX_PCS
    pc_selection: Literal["elbow", "variance"] = PC_SELECTION
    variance_threshold: float = VARIANCE_THRESHOLD
    n_neighbors: int = N_NEIGHBORS
    snn_prune: float = SNN_PRUNE
    resolution: float = LEIDEN_RESOLUTION
    embedding: Literal["tsne", "umap"] = "tsne"
    top_n: int = TOP_N_CARDS
    inspect_clusters: Optional[Sequence[int]] = None
    output_dir: str = "outputs"
    export_matrix: bool = False
    use_mlflow: bool = True
    tracking_uri: str = MLFLOW_TRACKING_URI
    experiment_name: str = MLFLOW_EXPERIMENT
    s3_output_prefix: Optional[str] = None
    extra_params: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.sample_size is not None and self.sample_size <= 0:
            raise ValueError(f"sample_size must be positive, got {self.sample_size}")
        if self.pc_selection not in ("elbow", "variance"):
            raise ValueError(f"Unknown PC selection method '{self.pc_selection}'")
        if self.embedding not in ("tsne", "umap"):
            raise ValueError(f"Unknown embedding '{self.embedding}'")
        if not 0 < self.variance_threshold <= 1:
            raise ValueError("variance_threshold must be in (0, 1]")

    @classmethod
    def for_set(cls, set_code: str, **kwargs) -> "PipelineConfig":
        """Defaults for another draft environment (input file and exclusions)."""
        kwargs.setdefault("input_path", f"game-data.{set_code}.PremierDraft.csv")
        kwargs.setdefault("excluded_cards", EXCLUDED_CARDS.get(set_code, ()))
        return cls(set_code=set_code, **kwargs)

    def to_params(self) -> dict:
        return {
            "input_path": self.input_path,
            "set_code": self.set_code,
            "sample_size": self.sample_size,
            "random_seed": self.seed,
            "n_excluded_cards": len(self.excluded_cards),
            "max_pcs": self.max_pcs,
            "pc_selection": self.pc_selection,
            "variance_threshold": self.variance_threshold,
            "n_neighbors": self.n_neighbors,
            "snn_prune": self.snn_prune,
            "leiden_resolution": self.resolution,
            "embedding": self.embedding,
            "top_n": self.top_n,
            **self.extra_params,
        }
