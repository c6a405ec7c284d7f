"""
Run Output Files
================
Writes one JSON array of every record of a run, plus one array per site:

    <output_dir>/all_products_<ts>.json
    <output_dir>/<site>_products_<ts>.json

``<ts>`` is the run's UTC ISO-8601 timestamp with ``:`` and ``.`` replaced
by ``-`` so it is safe in file names.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .models import ProductRecord

logger = logging.getLogger(__name__)


def file_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.isoformat().replace(":", "-").replace(".", "-")


def _write_json(path: Path, records: Sequence[ProductRecord]) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([r.to_dict() for r in records], f, indent=2, ensure_ascii=False)


def export_results(
    records: Sequence[ProductRecord],
    output_dir: str,
    moment: Optional[datetime] = None,
) -> List[str]:
    """Write the combined and per-site files; return their paths."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    ts = file_timestamp(moment)

    written = []
    combined = out / f"all_products_{ts}.json"
    _write_json(combined, records)
    written.append(str(combined))

    by_site: Dict[str, List[ProductRecord]] = {}
    for record in records:
        by_site.setdefault(record.site, []).append(record)
    for site, site_records in by_site.items():
        path = out / f"{site}_products_{ts}.json"
        _write_json(path, site_records)
        written.append(str(path))
        logger.info(f"[EXPORT] Saved {len(site_records)} records for {site}")

    logger.info(f"[EXPORT] {len(records)} records written to {out.absolute()}")
    return written
