# zendesk_export/comments.py
"""
Per-ticket comment export.

Each ticket's comments are paged through in full and written as one
record, so a ticket is either completely in comments.json or absent.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .client import RateLimitedHttpClient
from .errors import ResourceGoneError, TransientError, ZendeskExportError
from .ledger import ResumableLedger, repair_comments_file
from .pagination import LinkPage, follow_up_params, parse_page, ticket_comments
from .storage import ErrorLog, ExportFolder, append_comments, iter_records
from .summary import StageResult

DONE = "done"
SKIP = "skip"


@dataclass
class CommentOutcome:
    ticket_id: int
    state: str
    comments: int = 0
    reason: Optional[str] = None


def fetch_ticket_comments(client: RateLimitedHttpClient, ticket_id: int, folder: ExportFolder,
                          errors: ErrorLog) -> CommentOutcome:
    settings = client.settings
    endpoint = ticket_comments(ticket_id)
    url = endpoint.url(settings.credentials)
    params = dict(endpoint.params)
    accumulated: List[dict] = []
    error_count = 0

    while True:
        try:
            data = client.get_json(url, params=params or None)
        except ResourceGoneError:
            logging.warning("Ticket %s was removed, skipping it", ticket_id)
            errors.write(f"Ticket {ticket_id} was removed upstream (404), skipped comments")
            return CommentOutcome(ticket_id, SKIP, reason="gone")
        except TransientError as e:
            if error_count >= settings.max_ticket_errors:
                logging.error("Skipping ticket %s comments after %d errors", ticket_id, error_count + 1)
                errors.write(f"Skipping comments for ticket {ticket_id}: too many errors "
                             f"({error_count + 1}) at {url}: {e}")
                return CommentOutcome(ticket_id, SKIP, reason="too many errors")
            wait = client.backoff(error_count)
            error_count += 1
            logging.warning("Bad response for ticket %s (%s), retry %d in %.1fs", ticket_id, e, error_count, wait)
            client.sleep(wait)
            continue
        except ZendeskExportError as e:
            if settings.error_policy != "best-effort":
                raise
            logging.error("Unexpected error for ticket %s, skipping: %s", ticket_id, e)
            errors.write(f"Skipping comments for ticket {ticket_id}: {e}")
            return CommentOutcome(ticket_id, SKIP, reason="error")

        page: LinkPage = parse_page(endpoint, data)
        accumulated.extend(page.records)
        if page.is_last:
            break
        logging.debug("Ticket %s: more comments at %s", ticket_id, page.next_page)
        url, params, error_count = page.next_page, follow_up_params(endpoint, page.next_page), 0

    append_comments(folder.comments, ticket_id, accumulated)
    return CommentOutcome(ticket_id, DONE, comments=len(accumulated))


def export_all_ticket_comments(client: RateLimitedHttpClient, folder: ExportFolder,
                               errors: ErrorLog, result: StageResult) -> StageResult:
    """Walk tickets.json and export comments for every ticket not yet in the ledger."""
    repair_comments_file(folder.comments)
    ledger = ResumableLedger.from_comments_file(folder.comments)

    for ticket in iter_records(folder.tickets):
        ticket_id = int(ticket["id"])
        if ledger.already_exported(ticket_id):
            logging.debug("Ticket %s: comments already exported", ticket_id)
            result.skipped += 1
            continue
        outcome = fetch_ticket_comments(client, ticket_id, folder, errors)
        if outcome.state == DONE:
            ledger.mark(ticket_id)
            result.exported += 1
            logging.info("Ticket %s: %d comments", ticket_id, outcome.comments)
        else:
            result.failed += 1
    logging.info("Comments: end of tickets file reached")
    return result
