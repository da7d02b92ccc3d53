"""
CSV ingestion pipeline: raw upload -> validated, de-duplicated record batch.

Flow:
    iter_raw_rows()  — lazy rows from a headerless CSV (pandas, chunked)
    ingest_rows()    — normalize each row, skip malformed ones, drop repeated
                       model names (first occurrence wins)
    ingest_file()    — both of the above for a path / file object
    validate_file()  — pass/fail gate run before committing an import

Row-level problems are tolerated and only counted; the source sheets are
maintained by hand and always contain a few broken lines. A failure to read
or decode the stream itself raises ReadError and nothing downstream runs.
"""

import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import IO, Iterable, Iterator, List, Optional, Sequence, Union

import pandas as pd

from compat_parser import normalize_row
from errors import InvalidInput, ReadError
from log_setup import get_logger
from records import CatalogRecord

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
MAX_FIELDS = 3          # model, compatibility, presentation content
READ_CHUNK_ROWS = 500   # rows per pandas chunk while streaming
CSV_ENCODING = 'utf-8-sig'  # tolerate the BOM Excel adds on "CSV UTF-8" export

Source = Union[str, os.PathLike, IO]


@dataclass
class IngestionResult:
    records: List[CatalogRecord] = field(default_factory=list)
    total_rows: int = 0           # raw rows read
    total_processed: int = 0      # rows that normalized into a record
    rejected: int = 0             # malformed rows skipped
    duplicates_skipped: int = 0   # repeated model names dropped

    @property
    def accepted(self) -> int:
        return len(self.records)

    def counts(self) -> dict:
        return {
            'total_rows': self.total_rows,
            'total_processed': self.total_processed,
            'accepted': self.accepted,
            'rejected': self.rejected,
            'duplicates_skipped': self.duplicates_skipped,
        }


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _truncate_bad_line(bad_line: List[str]) -> List[str]:
    """Rows with extra commas keep their first MAX_FIELDS fields."""
    return bad_line[:MAX_FIELDS]


def _row_fields(values: Sequence) -> List[str]:
    """Row values up to the first missing field (pandas fills short rows with NaN)."""
    fields = []
    for value in values:
        if not isinstance(value, str) and pd.isna(value):
            break
        fields.append(str(value))
    return fields


def iter_raw_rows(source: Source) -> Iterator[List[str]]:
    """
    Yield each CSV line as a list of up to MAX_FIELDS strings.

    No header row; blank lines skipped; nothing is coerced to NaN/number.

    Raises:
        ReadError: file missing, undecodable, or not parseable as CSV
    """
    try:
        reader = pd.read_csv(
            source,
            header=None,
            names=list(range(MAX_FIELDS)),
            index_col=False,  # extra fields on the first line are not an index
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding=CSV_ENCODING,
            engine='python',
            on_bad_lines=_truncate_bad_line,
            chunksize=READ_CHUNK_ROWS,
        )
        with reader:
            for chunk in reader:
                for values in chunk.itertuples(index=False, name=None):
                    yield _row_fields(values)
    except pd.errors.EmptyDataError:
        return
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
        logger.error("Failed to read catalog CSV: %s", e)
        raise ReadError(
            "Could not read the CSV file",
            detail={'reason': str(e)},
        ) from e


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def ingest_rows(rows: Iterable[Sequence[Optional[str]]]) -> IngestionResult:
    """Normalize rows, count rejects, and keep the first record per model name."""
    result = IngestionResult()
    seen_models = set()

    for row in rows:
        result.total_rows += 1
        record = normalize_row(row)
        if record is None:
            result.rejected += 1
            continue

        result.total_processed += 1
        if record.model_name in seen_models:
            result.duplicates_skipped += 1
            continue
        seen_models.add(record.model_name)
        result.records.append(record)

    logger.info(
        "CSV processed: %d records accepted (%d rejected, %d duplicates)",
        result.accepted, result.rejected, result.duplicates_skipped,
        extra=result.counts(),
    )
    return result


def ingest_file(source: Source) -> IngestionResult:
    return ingest_rows(iter_raw_rows(source))


def is_valid_batch(result: IngestionResult) -> bool:
    """At least one accepted record with a non-empty model name."""
    return any(record.model_name.strip() for record in result.records)


def validate_file(source: Source) -> bool:
    """
    Pass/fail check for a CSV source on its own.

    commit_import applies the same rule through is_valid_batch() on the batch
    it has already parsed, so the file is not read twice.

    Read failures count as invalid rather than propagating.
    """
    try:
        result = ingest_file(source)
    except ReadError as e:
        logger.warning("CSV validation failed: %s", e.message)
        return False
    return is_valid_batch(result)


# ---------------------------------------------------------------------------
# Upload plumbing
# ---------------------------------------------------------------------------

def check_upload(filename: str, data: bytes, max_bytes: int) -> None:
    """Reject non-CSV names and oversized payloads before touching disk."""
    if not filename or not filename.lower().endswith('.csv'):
        raise InvalidInput("Only CSV files are accepted", detail={'filename': filename})
    if len(data) > max_bytes:
        raise InvalidInput(
            "File too large",
            detail={'size_bytes': len(data), 'max_bytes': max_bytes},
        )


@contextmanager
def temporary_upload(data: bytes, suffix: str = '.csv') -> Iterator[str]:
    """
    Write uploaded bytes to a temp file and yield its path.

    The file is removed on every exit path, including an
    exception inside the block.
    """
    handle = tempfile.NamedTemporaryFile(prefix='catalog-', suffix=suffix, delete=False)
    path = handle.name
    try:
        with handle:
            handle.write(data)
        yield path
    finally:
        if os.path.exists(path):
            os.remove(path)
