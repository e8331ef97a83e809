import logging
from pathlib import Path
from typing import List, Optional, Sequence

import polars as pl

from draft_archetypes.config import DECK_COLUMN_PREFIX, OUTCOME_COLUMN
from draft_archetypes.utils.s3_utils import read_csv_from_s3, read_csv_header_from_s3, split_s3_uri

logger = logging.getLogger(__name__)

# Card counts are small integers; a wide inference window keeps rare cards typed as ints
INFER_SCHEMA_LENGTH = 10000


def read_game_data(path: str, columns: Optional[Sequence[str]] = None) -> pl.DataFrame:
    """
    Read a game-data CSV (one row per recorded game) from disk or S3.

    Parameters:
    - path: local file path or ``s3://bucket/key`` URI
    - columns: optional subset of columns to parse

    Returns:
    - Polars DataFrame with the requested columns
    """
    if path.startswith("s3://"):
        bucket, key = split_s3_uri(path)
        return read_csv_from_s3(bucket, key, columns=columns, infer_schema_length=INFER_SCHEMA_LENGTH)

    if not Path(path).exists():
        raise FileNotFoundError(f"Game data file not found: {path}")

    logger.info(f"Reading game data from {path}")
    lf = pl.scan_csv(path, infer_schema_length=INFER_SCHEMA_LENGTH)
    if columns is not None:
        lf = lf.select(list(columns))
    df = lf.collect()
    logger.info(f"Loaded {df.height} games with {df.width} columns")
    return df


def deck_columns(columns: Sequence[str], prefix: str = DECK_COLUMN_PREFIX) -> List[str]:
    return [c for c in columns if c.startswith(prefix)]


def select_deck_columns(
    df: pl.DataFrame,
    prefix: str = DECK_COLUMN_PREFIX,
    keep_outcome: bool = True,
) -> pl.DataFrame:
    """
    Keep only the per-card deck count columns and rename them to bare card names.

    The game outcome column is carried along when present so that win rates
    can be reported per cluster.
    """
    cols = deck_columns(df.columns, prefix)
    if not cols:
        raise ValueError(f"No columns with prefix '{prefix}' found in game data")

    selected = df.select(cols).rename({c: c[len(prefix):] for c in cols})
    if keep_outcome and OUTCOME_COLUMN in df.columns:
        selected = selected.with_columns(df[OUTCOME_COLUMN].cast(pl.Boolean).alias(OUTCOME_COLUMN))

    logger.info(f"Selected {len(cols)} deck columns")
    return selected


def read_header(path: str) -> List[str]:
    """Column names of a game-data file without parsing its rows."""
    if path.startswith("s3://"):
        bucket, key = split_s3_uri(path)
        return read_csv_header_from_s3(bucket, key)

    if not Path(path).exists():
        raise FileNotFoundError(f"Game data file not found: {path}")
    return pl.scan_csv(path, infer_schema_length=INFER_SCHEMA_LENGTH).collect_schema().names()


def load_deck_data(path: str, prefix: str = DECK_COLUMN_PREFIX, keep_outcome: bool = True) -> pl.DataFrame:
    """Read only the deck (and outcome) columns of a game-data file."""
    header = read_header(path)
    columns = deck_columns(header, prefix)
    if not columns:
        raise ValueError(f"No columns with prefix '{prefix}' found in {path}")
    if keep_outcome and OUTCOME_COLUMN in header:
        columns.append(OUTCOME_COLUMN)

    df = read_game_data(path, columns=columns)
    return select_deck_columns(df, prefix=prefix, keep_outcome=keep_outcome)
