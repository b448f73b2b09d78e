"""
Filter engine — narrows the live feed the way the tender list's search box does.

A tender is kept when:
  - the search text (case-insensitive) appears in any of its searchable
    fields, and
  - its value is at least `min_value_crore` crore (1 crore = ₹1,00,00,000).
    Tenders whose value cannot be read count as ₹0.
"""

import logging
from typing import Optional

from feed.models import QueryGroup, Report, Tender

logger = logging.getLogger(__name__)

CRORE = 1_00_00_000
LAKH = 1_00_000

SEARCH_FIELDS = (
    "tender_name",
    "company_name",
    "state",
    "city",
    "tendering_authority",
    "tender_id",
    "tdr",
    "tender_no",
    "tender_id_str",
)


def parse_inr(text) -> Optional[float]:
    """
    Try to extract a rupee amount from strings like:
      "₹ 3,50,000", "350000", "3.5 Lakh", "1.2 Crore"
    Returns amount in rupees as a float, or None if it can't parse.
    """
    if text is None or text == "":
        return None
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)

    text = str(text).strip().replace(",", "").replace("₹", "").replace("Rs.", "").strip()
    num_str = "".join(c for c in text if c.isdigit() or c == ".")
    lowered = text.lower()

    try:
        if "crore" in lowered or "cr" in lowered:
            return float(num_str) * CRORE
        if "lakh" in lowered or "lac" in lowered:
            return float(num_str) * LAKH
        return float(num_str) if num_str else None
    except ValueError:
        return None


def matches(tender: Tender, search: str = "", min_value_crore: float = 0) -> bool:
    needle = search.strip().lower()
    if needle:
        hay = (str(tender.get(f) or "").lower() for f in SEARCH_FIELDS)
        if not any(needle in h for h in hay):
            return False

    value = parse_inr(tender.tender_value) or 0
    return value >= (min_value_crore or 0) * CRORE


def filter_report(
    report: Optional[Report],
    search: str = "",
    min_value_crore: float = 0,
) -> Optional[Report]:
    """
    Return a copy of `report` holding only the matching tenders.
    Query groups are kept (possibly empty) so their order is unchanged.
    """
    if report is None:
        return None

    queries = tuple(
        QueryGroup(
            query_name=q.query_name,
            tenders=tuple(t for t in q.tenders if matches(t, search, min_value_crore)),
            extra=q.extra,
        )
        for q in report.queries
    )
    filtered = Report(queries=queries, extra=report.extra)

    logger.info(
        "Filter result: %d/%d tenders kept (search=%r, min_crore=%s).",
        filtered.total_tenders(), report.total_tenders(), search, min_value_crore,
    )
    return filtered
