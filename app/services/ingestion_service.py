"""
Document index sync: keep the OpenAI vector store in line with a local PDF folder.

Responsibility: List what the vector store already holds, upload missing PDFs,
optionally re-upload everything or delete files no longer present locally.
Parsing and chunking are done by the vector store itself; nothing here reads
PDF contents. Called by scripts/ingest_documents.py and POST /ingest; no HTTP or FastAPI here.
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path

from openai import OpenAI

from app.core.config import OPENAI_API_KEY

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = frozenset({".pdf"})
VECTOR_STORE_NAME = "operabot-pdfs"


class NoDocumentsError(Exception):
    """Raised when the folder does not exist or holds no PDFs."""

    def __init__(self, folder: str) -> None:
        self.folder = folder
        super().__init__(f"No PDFs found in {folder}")


@dataclass
class SyncResult:
    """Summary of one sync run."""

    vector_store_id: str
    uploaded: int = 0
    skipped: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    status: str = ""


def normalize_filename(name: str) -> str:
    """Basename, lowercased, accents stripped; used to match local and stored files."""
    base = Path(str(name)).name.lower()
    decomposed = unicodedata.normalize("NFD", base)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def get_openai_client() -> OpenAI:
    if not OPENAI_API_KEY:
        raise RuntimeError("OPENAI_API_KEY is not set")
    return OpenAI(api_key=OPENAI_API_KEY)


def list_local_documents(folder: str | Path) -> list[Path]:
    root = Path(folder)
    if not root.is_dir():
        raise NoDocumentsError(str(folder))
    files = sorted(p for p in root.iterdir() if p.is_file() and p.suffix.lower() in DOCUMENT_EXTENSIONS)
    if not files:
        raise NoDocumentsError(str(folder))
    return files


def list_store_files(client: OpenAI, vector_store_id: str) -> dict[str, dict[str, str]]:
    """
    Map normalized filename -> {"file_id", "filename"} for files in the vector store.
    The store only lists file ids, so each name is looked up; failed lookups are skipped.
    """
    found: dict[str, dict[str, str]] = {}
    for item in client.vector_stores.files.list(vector_store_id=vector_store_id, limit=100):
        try:
            f = client.files.retrieve(item.id)
        except Exception as e:
            logger.warning("[ingestion:list_store_files] could not resolve file_id=%s: %s", item.id, e)
            continue
        key = normalize_filename(f.filename)
        found.setdefault(key, {"file_id": f.id, "filename": f.filename})
    logger.info("[ingestion:list_store_files] vector_store=%s files=%d", vector_store_id, len(found))
    return found


def create_vector_store(client: OpenAI, name: str = VECTOR_STORE_NAME) -> str:
    store = client.vector_stores.create(name=name)
    logger.info("[ingestion:create_vector_store] created vector_store=%s", store.id)
    return store.id


def sync_documents(
    folder: str | Path,
    vector_store_id: str,
    *,
    client: OpenAI | None = None,
    force: bool = False,
    delete_removed: bool = False,
    skip: int = 0,
    limit: int | None = None,
) -> SyncResult:
    """
    Upload local PDFs missing from the vector store (all of them when force=True).
    With delete_removed=True, stored files with no local counterpart are removed.

    skip/limit page through the sorted local folder so large folders can be
    synced in several short runs; deletion always compares against the whole folder.
    """
    if skip < 0 or (limit is not None and limit < 1):
        raise ValueError("skip must be >= 0 and limit >= 1")
    client = client or get_openai_client()
    local = list_local_documents(folder)
    page = local[skip:skip + limit] if limit is not None else local[skip:]
    stored = list_store_files(client, vector_store_id)
    result = SyncResult(vector_store_id=vector_store_id)

    to_upload: list[Path] = []
    for path in page:
        if not force and normalize_filename(path.name) in stored:
            result.skipped.append(path.name)
        else:
            to_upload.append(path)

    if to_upload:
        logger.info("[ingestion:sync_documents] uploading %d files: %s", len(to_upload), [p.name for p in to_upload])
        streams = [p.open("rb") for p in to_upload]
        try:
            batch = client.vector_stores.file_batches.upload_and_poll(vector_store_id=vector_store_id, files=streams)
        finally:
            for s in streams:
                s.close()
        result.status = batch.status
        result.uploaded = batch.file_counts.completed
        logger.info("[ingestion:sync_documents] batch status=%s counts=%s", batch.status, batch.file_counts)
    else:
        logger.info("[ingestion:sync_documents] nothing to upload")

    if delete_removed:
        local_keys = {normalize_filename(p.name) for p in local}
        for key, info in stored.items():
            if key in local_keys:
                continue
            try:
                client.vector_stores.files.delete(info["file_id"], vector_store_id=vector_store_id)
                result.deleted.append(info["filename"])
            except Exception as e:
                logger.warning("[ingestion:sync_documents] could not delete %s: %s", info["filename"], e)

    logger.info(
        "[ingestion:sync_documents] OUT uploaded=%d skipped=%d deleted=%d",
        result.uploaded, len(result.skipped), len(result.deleted),
    )
    return result
