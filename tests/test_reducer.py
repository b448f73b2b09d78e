# tests/test_reducer.py

from feed.dates import normalize_date
from feed.models import Report, Tender
from stream.reducer import merge_and_sort

from conftest import keys_of, make_tenders, report_dict, tender


def _report(*groups):
    return Report.from_dict(report_dict(*groups))


def test_two_batches_merge_into_one_sorted_feed():
    report = Report.empty()
    report = merge_and_sort(report, make_tenders(("t1", "2025-01-05")))
    report = merge_and_sort(report, make_tenders(("t2", "2024-12-01"), ("t1", "2025-01-05")))

    assert keys_of(report) == ["t1", "t2"]
    assert len(report.queries[0].tenders) == 2


def test_merging_the_same_batch_twice_is_idempotent():
    batch = make_tenders(("a", "01-02-2025"), ("b", "2025-03-01"), ("c", "bad"))
    once = merge_and_sort(Report.empty(), batch)
    twice = merge_and_sort(once, batch)

    assert keys_of(once) == keys_of(twice)
    assert once.queries[0].tenders == twice.queries[0].tenders


def test_incoming_record_replaces_existing_one():
    existing = _report(["Civil Works", [tender("A", tender_value="1")]])
    merged = merge_and_sort(existing, [Tender.from_dict(tender("A", tender_value="2"))])

    tenders = merged.queries[0].tenders
    assert len(tenders) == 1
    assert tenders[0].tender_value == "2"


def test_records_without_identity_key_are_dropped():
    incoming = [
        Tender.from_dict({"tender_name": "no key", "publish_date": "2025-01-01"}),
        Tender.from_dict(tender("", "2025-01-01")),
        Tender.from_dict(tender("k1", "2025-01-01")),
    ]
    merged = merge_and_sort(Report.empty(), incoming)

    assert keys_of(merged) == ["k1"]


def test_output_is_newest_first_with_unparseable_dates_last():
    incoming = make_tenders(
        ("old", "01-06-2023"),
        ("bad1", "someday"),
        ("new", "2025-02-01"),
        ("mid", "15/08/2024"),
        ("bad2", ""),
    )
    merged = merge_and_sort(Report.empty(), incoming)
    dates = [normalize_date(t.publish_date) for t in merged.queries[0].tenders]

    assert dates == sorted(dates, reverse=True)
    assert keys_of(merged)[:3] == ["new", "mid", "old"]
    assert set(keys_of(merged)[3:]) == {"bad1", "bad2"}


def test_equal_dates_keep_arrival_order():
    incoming = make_tenders(("x", "2025-01-01"), ("y", "01-01-2025"), ("z", "2025-01-01"))
    assert keys_of(merge_and_sort(Report.empty(), incoming)) == ["x", "y", "z"]


def test_everything_collapses_into_the_first_group():
    report = _report(
        ["Civil Works", [tender("a", "2025-01-01")]],
        ["Road Construction", [tender("b", "2025-01-03")]],
        ["Bridges", [tender("c", "2025-01-02")]],
    )
    merged = merge_and_sort(report, make_tenders(("d", "2024-01-01")))

    assert keys_of(merged) == ["b", "c", "a", "d"]
    assert sum(len(q.tenders) for q in merged.queries[1:]) == 0
    assert [q.query_name for q in merged.queries] == ["Civil Works", "Road Construction", "Bridges"]


def test_group_and_envelope_metadata_is_preserved():
    data = report_dict(["Civil Works", []], ["Roads", [tender("a")]])
    data["queries"][1]["id"] = "q-2"
    report = Report.from_dict(data)

    merged = merge_and_sort(report, [])

    assert merged.queries[1].extra == {"id": "q-2"}
    assert merged.extra == {"id": "run-1"}


def test_inputs_are_not_modified():
    report = _report(["Civil Works", [tender("a")]], ["Roads", [tender("b")]])
    before = report.to_dict()

    merge_and_sort(report, make_tenders(("c", "2025-05-05")))

    assert report.to_dict() == before


def test_report_without_groups_gets_a_default_group():
    merged = merge_and_sort(Report(queries=()), make_tenders(("a", "2025-01-01")))

    assert len(merged.queries) == 1
    assert keys_of(merged) == ["a"]


def test_unknown_fields_survive_a_merge():
    incoming = [Tender.from_dict(tender("a", document_text="long text", tags=["road"]))]
    merged = merge_and_sort(Report.empty(), incoming)

    out = merged.queries[0].tenders[0].to_dict()
    assert out["document_text"] == "long text"
    assert out["tags"] == ["road"]
