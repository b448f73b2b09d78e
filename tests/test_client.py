# tests/test_client.py

from unittest.mock import MagicMock

import requests

from feed.client import FeedClient, feed_params
from feed.models import ScrapeRun
import config


def _client():
    session = MagicMock()
    return FeedClient(base_url="http://api.test/api/v1/", token="", session=session), session


def _json_response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    return resp


def test_feed_params_leave_out_empty_values():
    assert feed_params() == {}
    assert feed_params("run-9", None) == {"scrape_run_id": "run-9"}
    assert feed_params(None, "last_7_days") == {"date_range": "last_7_days"}


def test_open_feed_builds_connection_without_connecting():
    client, session = _client()

    conn = client.open_feed(run_id="run-9", date_range="last_2_days")

    assert conn.url == "http://api.test/api/v1" + config.FEED_PATH
    assert conn.params == {"scrape_run_id": "run-9", "date_range": "last_2_days"}
    session.get.assert_not_called()


def test_get_scrape_runs_parses_runs():
    client, session = _client()
    session.get.return_value = _json_response({
        "runs": [
            {"id": "r1", "date_str": "2025-01-02", "no_of_new_tenders": "12", "unexpected": 1},
            {"id": "r2"},
        ]
    })

    runs = client.get_scrape_runs(limit=2)

    assert runs == [ScrapeRun(id="r1", date_str="2025-01-02", no_of_new_tenders="12"), ScrapeRun(id="r2")]
    args, kwargs = session.get.call_args
    assert args[0] == "http://api.test/api/v1/scraper/scrape/runs"
    assert kwargs["params"] == {"limit": 2}


def test_get_scrape_runs_returns_none_on_failure():
    client, session = _client()
    session.get.side_effect = requests.ConnectionError("down")

    assert client.get_scrape_runs() is None


def test_get_scrape_runs_returns_none_on_bad_json():
    client, session = _client()
    session.get.return_value.json.side_effect = ValueError("not json")

    assert client.get_scrape_runs() is None


def test_get_scrape_run_details():
    client, session = _client()
    session.get.return_value = _json_response({
        "id": "r1",
        "queries": [{"query_name": "Civil Works", "number_of_tenders": "4"}],
    })

    details = client.get_scrape_run_details("r1")

    assert details.id == "r1"
    assert details.queries[0]["query_name"] == "Civil Works"
    assert session.get.call_args[0][0].endswith("/scraper/scrape/runs/r1")


def test_trigger_scrape_posts_link():
    client, session = _client()
    session.post.return_value = _json_response({"status": "queued", "message": "ok"})

    reply = client.trigger_scrape("https://tenders.example/t/1", skip_dedup_check=True)

    assert reply["status"] == "queued"
    _, kwargs = session.post.call_args
    assert kwargs["json"] == {
        "link": "https://tenders.example/t/1",
        "source_priority": "normal",
        "skip_dedup_check": True,
    }


def test_trigger_scrape_http_error_returns_none():
    client, session = _client()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500")

    assert client.trigger_scrape("https://tenders.example/t/1") is None
