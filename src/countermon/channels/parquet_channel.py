"""
Parquet channel using Polars for columnar sample recording.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Literal, Union

import polars as pl

from .base import MetricsChannel

logger = logging.getLogger(__name__)

SAMPLE_SCHEMA = {"timestamp": pl.Float64, "key": pl.Utf8, "value": pl.Float64}


class ParquetChannel(MetricsChannel):
    """
    Buffers samples and writes them to a Parquet file.

    Rows are ``(timestamp, key, value)``. Buffered rows are written every
    ``flush_every`` samples and on close; an existing file is extended by
    concatenating its contents with the new rows.
    """

    def __init__(
        self,
        path: Union[str, Path],
        flush_every: int = 100,
        compression: Literal["snappy", "gzip", "brotli", "lz4", "zstd"] = "snappy",
    ):
        """
        Initialize the channel.

        Args:
            path: Parquet file to write
            flush_every: Number of buffered rows that triggers a write
            compression: Compression algorithm to use
        """
        self.path = Path(path)
        self.flush_every = flush_every
        self.compression = compression
        self._rows: List[Dict[str, Any]] = []
        logger.debug(f"Initialized ParquetChannel at {self.path} with compression: {compression}")

    @property
    def pending(self) -> int:
        return len(self._rows)

    def report(self, key: str, value: float) -> None:
        self._rows.append({"timestamp": time.time(), "key": key, "value": float(value)})
        if len(self._rows) >= self.flush_every:
            self.flush()

    def flush(self) -> None:
        if not self._rows:
            return

        df = pl.DataFrame(self._rows, schema=SAMPLE_SCHEMA)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                df = pl.concat([pl.read_parquet(self.path), df], how="vertical")
            df.write_parquet(self.path, compression=self.compression)
        except Exception as e:
            logger.error(f"Failed to write {len(self._rows)} samples to {self.path}: {e}")
            raise

        logger.debug(f"Wrote {len(self._rows)} samples to {self.path}")
        self._rows = []

    def load(self) -> pl.DataFrame:
        """Read every sample recorded so far (buffered rows excluded)."""
        if not self.path.exists():
            return pl.DataFrame(schema=SAMPLE_SCHEMA)
        return pl.read_parquet(self.path)
