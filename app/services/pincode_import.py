import csv
import logging
import re
from collections.abc import Iterable
from typing import Any

from supabase import Client

logger = logging.getLogger(__name__)

PINCODE_TABLE = "pincode_lookup"

_PIN_RE = re.compile(r"^\d{6}$")

STATE_REGIONS: dict[str, str] = {
    "DELHI": "North",
    "HARYANA": "North",
    "HIMACHAL PRADESH": "North",
    "JAMMU AND KASHMIR": "North",
    "LADAKH": "North",
    "PUNJAB": "North",
    "RAJASTHAN": "North",
    "UTTAR PRADESH": "North",
    "UTTARAKHAND": "North",
    "CHANDIGARH": "North",
    "ANDHRA PRADESH": "South",
    "KARNATAKA": "South",
    "KERALA": "South",
    "TAMIL NADU": "South",
    "TELANGANA": "South",
    "PUDUCHERRY": "South",
    "LAKSHADWEEP": "South",
    "ANDAMAN AND NICOBAR ISLANDS": "South",
    "BIHAR": "East",
    "JHARKHAND": "East",
    "ODISHA": "East",
    "WEST BENGAL": "East",
    "GOA": "West",
    "GUJARAT": "West",
    "MAHARASHTRA": "West",
    "DADRA AND NAGAR HAVELI AND DAMAN AND DIU": "West",
    "CHHATTISGARH": "Central",
    "MADHYA PRADESH": "Central",
    "ARUNACHAL PRADESH": "Northeast",
    "ASSAM": "Northeast",
    "MANIPUR": "Northeast",
    "MEGHALAYA": "Northeast",
    "MIZORAM": "Northeast",
    "NAGALAND": "Northeast",
    "SIKKIM": "Northeast",
    "TRIPURA": "Northeast",
}


def _title(text: str) -> str:
    # "NEW DELHI" -> "New Delhi"
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text.lower())


def parse_pincode_csv(lines: Iterable[str]) -> list[dict[str, Any]]:
    """
    Parse an India Post style CSV (pincode, district, state, ...).

    The header row is skipped, rows whose first column is not six digits
    are ignored, and only the first row for each pincode is kept.
    """
    reader = csv.reader(lines)
    next(reader, None)

    rows: dict[str, dict[str, Any]] = {}
    duplicates = 0

    for record in reader:
        if len(record) < 3:
            continue
        pincode, district, state = (v.strip().strip('"') for v in record[:3])
        if not _PIN_RE.match(pincode):
            continue
        if pincode in rows:
            duplicates += 1
            continue

        district_name = _title(district)
        rows[pincode] = {
            "pincode": pincode,
            "city": district_name or "Unknown",
            "district": district_name or None,
            "state": _title(state) or "Unknown",
            "region": STATE_REGIONS.get(state.upper(), "Central"),
            "country": "India",
            "is_serviceable": True,
        }

    logger.info("Parsed %d unique pincodes (%d duplicates skipped)", len(rows), duplicates)
    return list(rows.values())


def upload_pincodes(
    rows: list[dict[str, Any]],
    client: Client,
    batch_size: int = 500,
) -> int:
    """
    Upsert rows into pincode_lookup in batches.

    Returns:
        Number of rows sent.
    """
    sent = 0
    total_batches = (len(rows) + batch_size - 1) // batch_size

    for start in range(0, len(rows), batch_size):
        batch = rows[start:start + batch_size]
        client.table(PINCODE_TABLE).upsert(batch, on_conflict="pincode").execute()
        sent += len(batch)
        logger.info(
            "Batch %d/%d uploaded (%d rows)",
            start // batch_size + 1,
            total_batches,
            len(batch),
        )

    return sent
