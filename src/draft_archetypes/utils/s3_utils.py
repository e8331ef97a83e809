import io
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError
import polars as pl


def split_s3_uri(uri: str) -> Tuple[str, str]:
    """Split ``s3://bucket/key`` into ``(bucket, key)``."""
    if not uri.startswith("s3://"):
        raise ValueError(f"Not an S3 URI: {uri}")
    bucket, _, key = uri[len("s3://"):].partition("/")
    if not bucket or not key:
        raise ValueError(f"S3 URI must name a bucket and a key: {uri}")
    return bucket, key


def upload_to_s3(
    bucket: str,
    key: str,
    data: bytes,
    content_type: str = "application/octet-stream",
    s3_client=None,
):
    """
    Uploads in-memory bytes (e.g., CSV or JSON) to S3.

    Parameters:
    - bucket: Target S3 bucket name.
    - key: Full S3 key (path + filename).
    - data: File content as bytes.
    - content_type: MIME type (default: application/octet-stream).
    - s3_client: Optional boto3 S3 client.
    """
    if s3_client is None:
        s3_client = boto3.client("s3")

    try:
        logging.info(f"Uploading to s3://{bucket}/{key}")
        s3_client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        logging.info(f"Successfully uploaded to s3://{bucket}/{key}")
    except (BotoCoreError, ClientError):
        logging.exception(f"Failed to upload to s3://{bucket}/{key}")
        raise


def upload_file_to_s3(local_path: str, s3_prefix: str, s3_client=None) -> str:
    """Upload a local report file under an ``s3://bucket/prefix`` location."""
    bucket, prefix = split_s3_uri(s3_prefix)
    path = Path(local_path)
    key = f"{prefix.rstrip('/')}/{path.name}"
    content_type = {
        ".png": "image/png",
        ".json": "application/json",
        ".csv": "text/csv",
    }.get(path.suffix, "application/octet-stream")
    upload_to_s3(bucket, key, path.read_bytes(), content_type=content_type, s3_client=s3_client)
    return f"s3://{bucket}/{key}"


def read_csv_from_s3(
    bucket: str,
    key: str,
    columns: Optional[Sequence[str]] = None,
    s3_client=None,
    infer_schema_length: int = 10000,
) -> pl.DataFrame:
    """
    Reads a CSV file from S3 and returns it as a Polars DataFrame.

    Parameters:
    -----------
    bucket : str
        Name of the S3 bucket
    key : str
        Key (path) to the CSV file in S3
    columns : sequence of str, optional
        Subset of columns to parse
    s3_client : optional
        boto3 S3 client, created when omitted
    infer_schema_length : int
        Rows polars scans to infer column types

    Returns:
    --------
    pl.DataFrame
        DataFrame containing the file's contents
    """
    if s3_client is None:
        s3_client = boto3.client("s3")

    try:
        logging.info(f"Reading CSV from s3://{bucket}/{key}")
        obj = s3_client.get_object(Bucket=bucket, Key=key)
        data = obj["Body"].read()
        return pl.read_csv(
            io.BytesIO(data),
            columns=list(columns) if columns else None,
            infer_schema_length=infer_schema_length,
        )

    except (BotoCoreError, ClientError):
        logging.exception(f"Failed to read CSV s3://{bucket}/{key}")
        raise


def read_csv_header_from_s3(
    bucket: str,
    key: str,
    s3_client=None,
    max_bytes: int = 1024 * 1024,
) -> List[str]:
    """Column names of a CSV in S3, fetched with a ranged GET of the first line."""
    if s3_client is None:
        s3_client = boto3.client("s3")

    try:
        obj = s3_client.get_object(Bucket=bucket, Key=key, Range=f"bytes=0-{max_bytes - 1}")
        head = obj["Body"].read()
    except (BotoCoreError, ClientError):
        logging.exception(f"Failed to read CSV header s3://{bucket}/{key}")
        raise

    line, newline, _ = head.partition(b"\n")
    if not newline and len(head) >= max_bytes:
        raise ValueError(f"CSV header of s3://{bucket}/{key} is longer than {max_bytes} bytes")
    return pl.read_csv(io.BytesIO(line + b"\n")).columns
