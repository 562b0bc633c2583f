"""
Data Loader Script - pushes a JSON file of collections to a mirror.

Accepts either a flat document keyed by storage key
    {"erp_students": [...], "erp_hostel_data": {...}, ...}
or a backup produced by GET /api/backup
    {"exportedAt": "...", "data": {"erp_students": [...], ...}}
and POSTs every key to /save_data.

Usage:
    python load_data.py erp_data.json                          # Uses default URL
    python load_data.py erp_data.json http://localhost:8000    # Custom mirror URL
"""

import json
import os
import sys

import httpx


def post_json(client, url, data):
    resp = client.post(url, json=data)
    resp.raise_for_status()
    return resp.json()


def main():
    if len(sys.argv) < 2:
        print("Usage: python load_data.py <file.json> [mirror_url]")
        sys.exit(1)

    data_file = sys.argv[1]
    mirror_url = sys.argv[2] if len(sys.argv) > 2 else os.getenv("MIRROR_URL", "http://localhost:8000")
    save_url = f"{mirror_url.rstrip('/')}/save_data"

    if not os.path.exists(data_file):
        print(f"Error: Could not find {data_file}")
        sys.exit(1)

    print(f"Loading data from: {data_file}")
    with open(data_file, "r", encoding="utf-8") as f:
        document = json.load(f)

    if isinstance(document, dict) and isinstance(document.get("data"), dict):
        document = document["data"]
    if not isinstance(document, dict):
        print("Error: expected a JSON object keyed by storage key")
        sys.exit(1)

    print(f"Found {len(document)} keys to load")
    print(f"Sending to: {save_url}")
    print()

    saved = 0
    failed = 0
    with httpx.Client(timeout=30.0) as client:
        for key, data in document.items():
            try:
                result = post_json(client, save_url, {"key": key, "data": data})
            except httpx.HTTPError as e:
                failed += 1
                print(f"  ❌ {key}: {e}")
                continue
            saved += 1
            size = len(data) if isinstance(data, (list, dict)) else 1
            print(f"  ✅ {key}: {size} entries -> {result.get('file', '?')}")

    print()
    print("=" * 60)
    print(f"  Saved:  {saved}")
    print(f"  Failed: {failed}")
    print("=" * 60)

    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
