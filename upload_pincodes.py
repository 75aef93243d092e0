# upload_pincodes.py

import logging
import sys

from app.core.supabase_client import supabase_admin
from app.services.pincode_import import parse_pincode_csv, upload_pincodes


def main():
    path = sys.argv[1] if len(sys.argv) > 1 else "pincodes.csv"
    logging.basicConfig(level=logging.INFO)

    print(f"Reading {path}...")
    with open(path, encoding="utf-8") as fh:
        rows = parse_pincode_csv(fh)

    sent = upload_pincodes(rows, supabase_admin())
    print(f"Done: {sent} pincodes upserted into pincode_lookup.")


if __name__ == "__main__":
    main()
