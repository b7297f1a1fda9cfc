"""JSON and CSV sinks for harvested records."""

import csv
import json
import logging
from pathlib import Path
from typing import Iterable, List, Sequence

from harvester.ingest.base import Record

logger = logging.getLogger(__name__)

# UTF-8 with BOM so spreadsheet tools on Windows detect the encoding
FILE_ENCODING = "utf-8-sig"

CSV_DELIMITER = ";"
FEATURE_SEPARATOR = "|"
CSV_HEADERS = ["ID", "Name", "URL", "Description", "Price", "Image URL", "Category", "Features"]

FORMATS = ("json", "csv", "both")


def write_json(records: Iterable[Record], path: str | Path) -> Path:
    """Write records as an indented JSON array."""
    path = Path(path)
    with path.open("w", encoding=FILE_ENCODING) as f:
        json.dump([r.to_dict() for r in records], f, ensure_ascii=False, indent=2)
        f.write("\n")
    return path


def write_csv(records: Iterable[Record], path: str | Path) -> Path:
    """Write records as ';'-separated CSV with CRLF line endings."""
    path = Path(path)
    with path.open("w", encoding=FILE_ENCODING, newline="") as f:
        writer = csv.writer(f, delimiter=CSV_DELIMITER, lineterminator="\r\n")
        writer.writerow(CSV_HEADERS)
        for r in records:
            writer.writerow([
                r.id,
                r.name,
                r.url,
                r.description,
                r.price,
                r.image_url,
                r.category,
                FEATURE_SEPARATOR.join(r.features),
            ])
    return path


def save_output(
    records: Sequence[Record],
    output_format: str,
    output_dir: str | Path = ".",
    json_filename: str = "products.json",
    csv_filename: str = "products.csv",
) -> List[Path]:
    """
    Save records in the requested format(s).

    A failing sink is logged and does not prevent the other from writing.

    Returns:
        Paths that were written successfully
    """
    output_format = output_format.lower()
    if output_format not in FORMATS:
        raise ValueError(f"Unknown output format {output_format!r}, expected one of {FORMATS}")

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    sinks = []
    if output_format in ("json", "both"):
        sinks.append((write_json, output_dir / json_filename))
    if output_format in ("csv", "both"):
        sinks.append((write_csv, output_dir / csv_filename))

    written = []
    for sink, path in sinks:
        try:
            written.append(sink(records, path))
        except OSError as e:
            logger.error(f"Failed to save {path}: {e}")
            continue
        logger.info(f"Saved {len(records)} records to {path}")
    return written
