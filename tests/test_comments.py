"""Tests for per-ticket comment export."""

import pytest
import requests

from zendesk_export.comments import DONE, SKIP, export_all_ticket_comments, fetch_ticket_comments
from zendesk_export.errors import FatalHttpError
from zendesk_export.ledger import iter_comment_records
from zendesk_export.storage import append_comments, append_records
from zendesk_export.summary import StageResult

from tests.conftest import BASE, make_response, requested_params, requested_urls


def comments_page(comments, next_page=None):
    return make_response({"comments": comments, "next_page": next_page})


def read_errors(folder):
    if not folder.errors.exists():
        return []
    return folder.errors.read_text(encoding="utf-8").splitlines()


class TestFetchTicketComments:
    def test_accumulates_pages_into_one_record(self, client, session, folder, errors):
        nxt = BASE + "tickets/5/comments.json?page=2"
        session.request.side_effect = [
            comments_page([{"id": 1}], nxt),
            comments_page([{"id": 2}, {"id": 3}]),
        ]
        outcome = fetch_ticket_comments(client, 5, folder, errors)
        assert outcome.state == DONE and outcome.comments == 3
        assert list(iter_comment_records(folder.comments)) == [(5, [{"id": 1}, {"id": 2}, {"id": 3}])]
        assert requested_urls(session) == [BASE + "tickets/5/comments.json", nxt]

    def test_404_skips_with_one_error_line(self, client, session, folder, errors):
        session.request.return_value = make_response(status_code=404)
        outcome = fetch_ticket_comments(client, 77, folder, errors)
        assert outcome.state == SKIP
        lines = read_errors(folder)
        assert len(lines) == 1 and "77" in lines[0]
        assert not folder.comments.exists()

    def test_transient_errors_retry_same_page(self, client, session, folder, errors):
        session.request.side_effect = [
            make_response(status_code=500),
            make_response(status_code=503),
            comments_page([{"id": 1}]),
        ]
        outcome = fetch_ticket_comments(client, 3, folder, errors)
        assert outcome.state == DONE
        assert requested_urls(session) == [BASE + "tickets/3/comments.json"] * 3
        assert read_errors(folder) == []

    def test_skips_once_error_count_exceeds_limit(self, client, session, folder, errors):
        session.request.return_value = make_response(status_code=500)
        outcome = fetch_ticket_comments(client, 8, folder, errors)
        assert outcome.state == SKIP
        # initial attempt + 10 retries
        assert session.request.call_count == 11
        lines = read_errors(folder)
        assert len(lines) == 1 and "ticket 8" in lines[0]
        assert not folder.comments.exists()

    def test_unclassified_error_is_fatal_by_default(self, client, session, folder, errors):
        session.request.return_value = make_response(status_code=403)
        with pytest.raises(FatalHttpError):
            fetch_ticket_comments(client, 9, folder, errors)

    def test_best_effort_policy_skips_unclassified(self, settings, session, sleeps, folder, errors):
        from zendesk_export.client import RateLimitedHttpClient
        c = RateLimitedHttpClient(settings.with_overrides(error_policy="best-effort"),
                                  session=session, sleep=sleeps.append)
        session.request.return_value = make_response(status_code=403)
        outcome = fetch_ticket_comments(c, 9, folder, errors)
        assert outcome.state == SKIP
        assert len(read_errors(folder)) == 1


class TestExportAll:
    def test_skips_tickets_already_in_ledger(self, client, session, folder, errors):
        append_records(folder.tickets, [{"id": 1}, {"id": 2}, {"id": 3}])
        append_comments(folder.comments, 1, [{"id": 100}])
        before = folder.comments.read_text(encoding="utf-8")
        session.request.side_effect = [
            comments_page([{"id": 200}]),
            comments_page([{"id": 300}]),
        ]
        result = export_all_ticket_comments(client, folder, errors, StageResult("comments"))
        assert requested_urls(session) == [BASE + "tickets/2/comments.json", BASE + "tickets/3/comments.json"]
        assert folder.comments.read_text(encoding="utf-8").startswith(before)
        assert [tid for tid, _ in iter_comment_records(folder.comments)] == [1, 2, 3]
        assert (result.exported, result.skipped, result.failed) == (2, 1, 0)

    def test_rerun_fetches_nothing(self, client, session, folder, errors):
        append_records(folder.tickets, [{"id": 1}, {"id": 2}])
        session.request.side_effect = [comments_page([]), comments_page([])]
        export_all_ticket_comments(client, folder, errors, StageResult("comments"))
        snapshot = folder.comments.read_text(encoding="utf-8")
        session.request.reset_mock()
        result = export_all_ticket_comments(client, folder, errors, StageResult("comments"))
        assert session.request.call_count == 0
        assert folder.comments.read_text(encoding="utf-8") == snapshot
        assert result.skipped == 2

    def test_duplicate_ticket_lines_fetched_once(self, client, session, folder, errors):
        append_records(folder.tickets, [{"id": 4}, {"id": 4}])
        session.request.side_effect = [comments_page([{"id": 1}])]
        export_all_ticket_comments(client, folder, errors, StageResult("comments"))
        assert session.request.call_count == 1

    def test_removed_ticket_counted_as_failed(self, client, session, folder, errors):
        append_records(folder.tickets, [{"id": 1}, {"id": 2}])
        session.request.side_effect = [make_response(status_code=404), comments_page([])]
        result = export_all_ticket_comments(client, folder, errors, StageResult("comments"))
        assert [tid for tid, _ in iter_comment_records(folder.comments)] == [2]
        assert result.failed == 1 and result.exported == 1


class TestBadBodiesAndBackoff:
    def test_non_json_body_is_retried_then_skipped(self, settings, session, sleeps, folder, errors):
        from zendesk_export.client import RateLimitedHttpClient
        c = RateLimitedHttpClient(settings.with_overrides(error_policy="best-effort", max_ticket_errors=2),
                                  session=session, sleep=sleeps.append)
        resp = make_response()
        resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
        session.request.return_value = resp
        outcome = fetch_ticket_comments(c, 9, folder, errors)
        assert outcome.state == SKIP
        assert session.request.call_count == 3
        lines = read_errors(folder)
        assert len(lines) == 1 and "ticket 9" in lines[0]
        assert not folder.comments.exists()

    def test_non_json_body_then_recovery(self, client, session, folder, errors):
        bad = make_response()
        bad.json.side_effect = ValueError("truncated")
        session.request.side_effect = [bad, comments_page([{"id": 1}])]
        assert fetch_ticket_comments(client, 4, folder, errors).state == DONE
        assert list(iter_comment_records(folder.comments)) == [(4, [{"id": 1}])]

    def test_transient_retries_back_off(self, client, session, sleeps, folder, errors):
        session.request.side_effect = [
            make_response(status_code=500),
            make_response(status_code=502),
            make_response(status_code=503),
            comments_page([]),
        ]
        fetch_ticket_comments(client, 3, folder, errors)
        assert sleeps == [1.0, 2.0, 4.0]

    def test_follow_up_pages_keep_inline_images_param(self, client, session, folder, errors):
        nxt = BASE + "tickets/5/comments.json?page=2"
        session.request.side_effect = [
            comments_page([{"id": 1}], nxt),
            comments_page([{"id": 2}], BASE + "tickets/5/comments.json?page=3&include_inline_images=true"),
            comments_page([{"id": 3}]),
        ]
        fetch_ticket_comments(client, 5, folder, errors)
        assert requested_params(session) == [
            {"include_inline_images": "true"},
            {"include_inline_images": "true"},
            None,
        ]
