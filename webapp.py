"""
webapp.py — Local live-tender dashboard.

Run:  python webapp.py
Open: http://localhost:5000
"""

import logging
import os
from dataclasses import asdict
from pathlib import Path

from flask import Flask, Response, abort, jsonify, request, send_from_directory

import config
from feed.client import FeedClient
from filters.tender_filter import filter_report
from output_engine.excel_exporter import export_to_excel
from storage.backends import FileBackend
from storage.snapshot_store import SnapshotStore
from stream.live_feed import LiveFeed
from stream.session import StreamSession

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s — %(message)s")
log = logging.getLogger("webapp")

app = Flask(__name__)

# ── Feed state ────────────────────────────────────────────────────────────────
# One live feed for the whole dashboard; built on first use so importing
# this module never opens a connection.
client = FeedClient()
live_feed = None


def get_live_feed() -> LiveFeed:
    global live_feed
    if live_feed is None:
        store = SnapshotStore(
            FileBackend(config.CACHE_DIR, quota_bytes=config.CACHE_QUOTA_BYTES)
        )
        live_feed = LiveFeed(StreamSession(client, store))
        live_feed.select()
    return live_feed


def _float_arg(name: str) -> float:
    raw = request.args.get(name, "") or "0"
    try:
        return float(raw)
    except ValueError:
        abort(400, description=f"{name} must be a number")

# ── Routes ────────────────────────────────────────────────────────────────────

@app.get("/api/feed")
def api_feed():
    return jsonify(get_live_feed().snapshot().to_dict())

@app.post("/api/feed/select")
def api_feed_select():
    body = request.get_json(silent=True) or {}
    run_id = body.get("run_id") or None
    date_range = body.get("date_range") or None
    if date_range and date_range not in config.QUICK_DATE_RANGES:
        return jsonify({"error": f"unknown date_range {date_range!r}"}), 400
    snap = get_live_feed().select(run_id=run_id, date_range=date_range)
    return jsonify(snap.to_dict()), 202

@app.get("/api/tenders")
def api_tenders():
    snap = get_live_feed().snapshot()
    shown = filter_report(
        snap.report,
        search=request.args.get("search", ""),
        min_value_crore=_float_arg("min_crore"),
    )
    tenders = shown.all_tenders() if shown is not None else []
    return jsonify({
        "status":       snap.status.value,
        "error":        snap.error,
        "isRefreshing": snap.is_refreshing,
        "count":        len(tenders),
        "tenders":      [t.to_dict() for t in tenders],
    })

@app.get("/api/runs")
def api_runs():
    limit = request.args.get("limit", 10, type=int)
    runs = client.get_scrape_runs(limit=limit)
    if runs is None:
        return jsonify({"error": "could not fetch scrape runs"}), 502
    return jsonify({"runs": [asdict(r) for r in runs], "total": len(runs)})

@app.post("/api/scrape")
def api_scrape():
    body = request.get_json(silent=True) or {}
    link = (body.get("link") or "").strip()
    if not link:
        return jsonify({"error": "link is required"}), 400
    reply = client.trigger_scrape(
        link,
        source_priority=body.get("source_priority", "normal"),
        skip_dedup_check=bool(body.get("skip_dedup_check", False)),
    )
    if reply is None:
        return jsonify({"error": "scrape request failed"}), 502
    return jsonify(reply), 202

@app.get("/api/export")
def api_export():
    snap = get_live_feed().snapshot()
    if snap.report is None or snap.report.total_tenders() == 0:
        return jsonify({"error": "no tenders loaded yet"}), 409
    shown = filter_report(
        snap.report,
        search=request.args.get("search", ""),
        min_value_crore=_float_arg("min_crore"),
    )
    filepath = Path(export_to_excel(shown.all_tenders(), snap.report.all_tenders()))
    return send_from_directory(filepath.parent, filepath.name, as_attachment=True)

@app.get("/")
def index():
    return Response(HTML, mimetype="text/html")

# ── HTML + JS (single-file dashboard) ─────────────────────────────────────────

HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>TenderIQ — Live Tenders</title>
<style>
  body { font-family: Calibri, Arial, sans-serif; margin: 24px; color: #1B3A6B; }
  table { border-collapse: collapse; width: 100%; font-size: 13px; }
  th { background: #1B3A6B; color: #fff; padding: 6px; text-align: left; }
  td { border-bottom: 1px solid #D0D7E5; padding: 6px; }
  tr:nth-child(even) td { background: #F0F4FF; }
  #status { font-weight: bold; margin-left: 12px; }
  .error { color: #B00020; }
</style>
</head>
<body>
<h2>Live Tenders <span id="status"></span></h2>
<p>
  <select id="range">
    <option value="">Latest run</option>
    <option value="last_2_days">Last 2 days</option>
    <option value="last_5_days">Last 5 days</option>
    <option value="last_7_days">Last 7 days</option>
    <option value="last_30_days">Last 30 days</option>
  </select>
  <input id="search" placeholder="Search tenders…">
  <input id="min" type="number" min="0" step="0.5" placeholder="Min value (Cr)">
  <a id="export" href="/api/export">Download Excel</a>
</p>
<p id="error" class="error"></p>
<table>
  <thead><tr><th>#</th><th>Published</th><th>Title</th><th>Organisation</th>
  <th>City</th><th>Value</th><th>EMD</th><th>Submission</th></tr></thead>
  <tbody id="rows"></tbody>
</table>
<script>
const $ = (id) => document.getElementById(id);
const esc = (s) => String(s ?? "—").replace(/[&<>"]/g, c => ({"&":"&amp;","<":"&lt;",">":"&gt;",'"':"&quot;"}[c]));

async function refresh() {
  const qs = new URLSearchParams({search: $("search").value, min_crore: $("min").value || 0});
  $("export").href = "/api/export?" + qs;
  const data = await (await fetch("/api/tenders?" + qs)).json();
  const label = data.status === "streaming" ? "Syncing…" : data.status;
  $("status").textContent = `${label} · ${data.count} tender(s)`;
  $("error").textContent = data.error || "";
  $("rows").innerHTML = data.tenders.slice(0, 500).map((t, i) => `<tr>
    <td>${i + 1}</td><td>${esc(t.publish_date)}</td><td>${esc(t.tender_name)}</td>
    <td>${esc(t.company_name)}</td><td>${esc(t.city)}</td><td>${esc(t.tender_value)}</td>
    <td>${esc(t.emd)}</td><td>${esc(t.submission_date)}</td></tr>`).join("");
}

$("range").addEventListener("change", async () => {
  await fetch("/api/feed/select", {method: "POST", headers: {"Content-Type": "application/json"},
    body: JSON.stringify({date_range: $("range").value})});
  refresh();
});
$("search").addEventListener("input", refresh);
$("min").addEventListener("input", refresh);
refresh();
setInterval(refresh, 3000);
</script>
</body>
</html>
"""


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    log.info("Dashboard on http://localhost:%d", port)
    get_live_feed()
    app.run(host="127.0.0.1", port=port, debug=False)
