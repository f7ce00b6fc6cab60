#!/usr/bin/env python3
"""
Sync a folder of procedure PDFs into the OpenAI vector store used for grounding.

Uploads PDFs not yet in the store. Use --force to re-upload everything,
--delete-removed to drop stored files that are no longer in the folder, and
--create to make a new vector store (print its id and set VECTOR_STORE_ID).

Run from project root:

    python scripts/ingest_documents.py ./documents
    python scripts/ingest_documents.py ./documents --force
    python scripts/ingest_documents.py ./documents --delete-removed
    python scripts/ingest_documents.py ./documents --create
    python scripts/ingest_documents.py ./documents --skip 20 --limit 10
"""

import argparse
import logging
import sys
from pathlib import Path

# Project root on path so "app" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.core.config import DOCUMENTS_DIR, VECTOR_STORE_ID
from app.services.ingestion_service import (
    NoDocumentsError,
    create_vector_store,
    get_openai_client,
    sync_documents,
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync local PDFs into the vector store.")
    parser.add_argument("folder", nargs="?", default=DOCUMENTS_DIR, help="Folder with PDFs (default: %(default)s).")
    parser.add_argument("--force", action="store_true", help="Re-upload files already in the store.")
    parser.add_argument("--delete-removed", action="store_true", help="Delete stored files missing from the folder.")
    parser.add_argument("--create", action="store_true", help="Create a new vector store instead of using VECTOR_STORE_ID.")
    parser.add_argument("--skip", type=int, default=0, help="Skip the first N PDFs of the sorted folder.")
    parser.add_argument("--limit", type=int, default=None, help="Sync at most N PDFs.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    try:
        client = get_openai_client()
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    vector_store_id = create_vector_store(client) if args.create else VECTOR_STORE_ID
    if not vector_store_id:
        print("Error: VECTOR_STORE_ID is not set (or pass --create).", file=sys.stderr)
        return 1

    try:
        result = sync_documents(
            args.folder,
            vector_store_id,
            client=client,
            force=args.force,
            delete_removed=args.delete_removed,
            skip=args.skip,
            limit=args.limit,
        )
    except (NoDocumentsError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("Summary")
    print(f"  vector store : {result.vector_store_id}")
    print(f"  uploaded     : {result.uploaded}" + (f" ({result.status})" if result.status else ""))
    print(f"  skipped      : {len(result.skipped)}" + (f" ({', '.join(result.skipped)})" if result.skipped else ""))
    if args.delete_removed:
        print(f"  deleted      : {len(result.deleted)}")
    if args.create:
        print(f"VECTOR_STORE_ID={result.vector_store_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
