"""
Merge-and-sort reducer for the live feed.

Pure: takes the current Report and incoming tenders, returns a new Report.
Safe to call once per event on the hot path.
"""

from typing import Dict, Iterable

from feed.dates import normalize_date
from feed.models import QueryGroup, Report, Tender


def merge_and_sort(report: Report, incoming: Iterable[Tender]) -> Report:
    """
    Fold `incoming` into `report`.

    - Tenders are keyed by tender_id_str; incoming wins over existing.
    - Tenders without a tender_id_str are dropped.
    - Everything is sorted newest-first by publish_date.
    - The whole feed lands in the first query group; the others are emptied
      but keep their name and metadata.
    """
    by_key: Dict[str, Tender] = {}
    for query in report.queries:
        for tender in query.tenders:
            if tender.tender_id_str:
                by_key[tender.tender_id_str] = tender

    for tender in incoming:
        if tender.tender_id_str:
            by_key[tender.tender_id_str] = tender

    # sorted() is stable, so equal dates keep their arrival order.
    ordered = tuple(
        sorted(
            by_key.values(),
            key=lambda t: normalize_date(t.publish_date or ""),
            reverse=True,
        )
    )

    queries = report.queries or (QueryGroup(),)
    new_queries = tuple(
        QueryGroup(
            query_name=q.query_name,
            tenders=ordered if i == 0 else (),
            extra=q.extra,
        )
        for i, q in enumerate(queries)
    )
    return Report(queries=new_queries, extra=report.extra)
