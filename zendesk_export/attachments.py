# zendesk_export/attachments.py
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Set

import requests

from .client import RateLimitedHttpClient
from .errors import AttachmentError, HttpError
from .ledger import iter_comment_records, repair_comments_file
from .storage import ErrorLog, ensure_dir
from .summary import StageResult

CHUNK_SIZE = 1024 * 1024


def attachment_filename(att: Dict[str, Any]) -> str:
    """`<id><ext>`, the extension taken from the original file name."""
    ext = os.path.splitext(att.get("file_name") or "")[1]
    return f"{att['id']}{ext}"


class AttachmentFetcher:
    """
    Downloads every comment attachment listed in comments.json.

    A file on disk means "already fetched". Bytes go to `<name>.part`
    first and are renamed into place when complete.
    """

    def __init__(self, client: RateLimitedHttpClient, target_dir: Path, errors: ErrorLog,
                 result: Optional[StageResult] = None):
        self.client = client
        self.target_dir = Path(target_dir)
        self.errors = errors
        self.result = result or StageResult("attachments")

    def fetch_all(self, comments_path: Path) -> Set[int]:
        ensure_dir(self.target_dir)
        repair_comments_file(comments_path)
        processed = set()
        for ticket_id, comments in iter_comment_records(comments_path):
            for comment in comments:
                for att in comment.get("attachments") or []:
                    self._fetch_one(ticket_id, att)
            processed.add(ticket_id)
        return processed

    def _fetch_one(self, ticket_id: int, att: Dict[str, Any]) -> None:
        target = self.target_dir / attachment_filename(att)
        if target.exists():
            self.result.skipped += 1
            return
        try:
            size = self.download(att, target)
        except AttachmentError as e:
            logging.warning("Skipping attachment %s of ticket %s: %s", att.get("id"), ticket_id, e.reason)
            self.errors.write(f"Skipping attachment id {att.get('id')} (ticket {ticket_id}) Error: {e.reason}")
            self.result.failed += 1
            return
        self.result.exported += 1
        self.result.bytes += size
        logging.info("Attachment %s saved (%d bytes)", target.name, size)

    def download(self, att: Dict[str, Any], target: Path) -> int:
        url = att.get("content_url")
        if not url:
            raise AttachmentError(att.get("id"), "no content_url")
        part = target.with_name(target.name + ".part")
        try:
            resp = self.client.send("GET", url, binary=True)
            written = 0
            try:
                with open(part, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
            finally:
                resp.close()
            os.replace(part, target)
            return written
        except HttpError as e:
            self._discard(part)
            raise AttachmentError(att.get("id"), f"{type(e).__name__} {e.status or ''}".strip()) from e
        except (requests.RequestException, OSError) as e:
            self._discard(part)
            raise AttachmentError(att.get("id"), f"{type(e).__name__}: {e}") from e

    @staticmethod
    def _discard(part: Path) -> None:
        try:
            part.unlink()
        except FileNotFoundError:
            pass
