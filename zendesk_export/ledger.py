# zendesk_export/ledger.py
import json
import logging
from pathlib import Path
from typing import Iterator, List, Set, Tuple


def iter_comment_records(path: Path) -> Iterator[Tuple[int, List[dict]]]:
    """
    Yield (ticket_id, comments) from a comments file.

    Records are line pairs: the ticket id at even (0-based) positions,
    the JSON array of that ticket's comments on the following line. A
    trailing id without its array is not yielded.
    """
    if not path.exists():
        return
    with open(path, "r", encoding="utf-8") as f:
        ticket_id = None
        for line_number, line in enumerate(f):
            line = line.strip()
            if line_number % 2 == 0:
                ticket_id = int(line)
            else:
                yield ticket_id, json.loads(line)
                ticket_id = None
    if ticket_id is not None:
        logging.warning("Comments file ends with ticket %s but no comments line", ticket_id)


def repair_comments_file(path: Path) -> bool:
    """
    Drop an incomplete trailing record left by an interrupted write.

    Everything up to the last complete (id line, array line) pair is kept.
    Returns True when the file was truncated.
    """
    if not path.exists():
        return False
    good_end = 0
    offset = 0
    line_number = 0
    with open(path, "rb") as f:
        for raw in f:
            offset += len(raw)
            if line_number % 2 == 1 and raw.endswith(b"\n"):
                good_end = offset
            line_number += 1
    if good_end == offset:
        return False
    logging.warning("Truncating incomplete trailing record in %s (%d bytes)", path, offset - good_end)
    with open(path, "r+b") as f:
        f.truncate(good_end)
    return True


class ResumableLedger:
    """Ticket ids whose comments are already in the comments file."""

    def __init__(self, ids: Set[int] = None):
        self._ids = set(ids or ())

    @classmethod
    def from_comments_file(cls, path: Path) -> "ResumableLedger":
        ids = {ticket_id for ticket_id, _ in iter_comment_records(path)}
        logging.info("Ledger: %d tickets already have comments exported", len(ids))
        return cls(ids)

    def already_exported(self, ticket_id: int) -> bool:
        return int(ticket_id) in self._ids

    def mark(self, ticket_id: int) -> None:
        self._ids.add(int(ticket_id))

    def __len__(self):
        return len(self._ids)

    def __contains__(self, ticket_id):
        return self.already_exported(ticket_id)
