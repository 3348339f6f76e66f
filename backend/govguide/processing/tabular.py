"""CSV parsing for the government scheme table."""

from __future__ import annotations

import csv
import io
import logging

from pydantic import ValidationError

from govguide.core.errors import ExtractionError
from govguide.schemas.retrieval import SCHEME_COLUMNS, SchemeRecord

logger = logging.getLogger(__name__)


def parse_scheme_csv(data: bytes) -> list[SchemeRecord]:
    """
    Parse CSV bytes into SchemeRecords.

    The header row declares the columns. Blank lines are skipped, values stay
    strings, a UTF-8 BOM is tolerated. Unknown columns are ignored and missing
    ones come back empty. No chunking or embedding happens here.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ExtractionError(f"Scheme CSV is not valid UTF-8: {exc}") from exc

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ExtractionError("Scheme CSV has no header row")

    missing = [c for c in SCHEME_COLUMNS if c not in reader.fieldnames]
    if missing:
        logger.warning("Scheme CSV | missing columns=%s", ", ".join(missing))

    records: list[SchemeRecord] = []
    for line_no, row in enumerate(reader, start=2):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        try:
            records.append(SchemeRecord.model_validate(row))
        except ValidationError as exc:
            logger.warning("Scheme CSV | skipping line=%d error=%s", line_no, exc)

    logger.info("Scheme CSV | records=%d", len(records))
    return records
