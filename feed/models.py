"""
Data model for the live tender feed.

Field names mirror the backend's JSON byte-for-byte (tender_id_str,
publish_date, queries[].tenders[], ...). Anything the model does not
name explicitly is carried in `extra` so it survives a round trip.

Report, QueryGroup and Tender are frozen: every change to the feed
produces a new Report, and consumers only ever see snapshots.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class StreamStatus(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class Tender:
    # ── Identity ─────────────────────────────────────────────────────────────
    tender_id_str: Optional[str] = None      # stable across re-scrapes
    id: Any = None
    tdr: Optional[str] = None

    # ── Display ──────────────────────────────────────────────────────────────
    tender_name: Optional[str] = None
    company_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None

    # ── Financials (free text, e.g. "₹ 3.5 Crore") ───────────────────────────
    tender_value: Any = None
    emd: Any = None

    # ── Dates (free text, heterogeneous formats) ─────────────────────────────
    publish_date: Optional[str] = None
    submission_date: Optional[str] = None

    is_wishlisted: Optional[bool] = None

    # ── Every other wire field, kept verbatim ────────────────────────────────
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tender":
        if not isinstance(data, dict):
            raise TypeError(f"tender must be an object, got {type(data).__name__}")
        key = data.get("tender_id_str")
        if key is not None and not isinstance(key, str):
            raise TypeError(f"tender_id_str must be a string, got {type(key).__name__}")
        known = {k: data[k] for k in SNAPSHOT_FIELDS if k in data}
        extra = {k: v for k, v in data.items() if k not in SNAPSHOT_FIELDS}
        return cls(extra=extra, **known)

    def to_dict(self) -> Dict[str, Any]:
        out = self.to_snapshot_dict()
        out.update(self.extra)
        return out

    def to_snapshot_dict(self) -> Dict[str, Any]:
        """Only the fields needed to render a list row; large blobs are left out."""
        return {
            name: getattr(self, name)
            for name in SNAPSHOT_FIELDS
            if getattr(self, name) is not None
        }

    def get(self, name: str, default: Any = None) -> Any:
        """Look a wire field up by name, whether modelled or carried in extra."""
        if name in SNAPSHOT_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.extra.get(name, default)

    def display_value(self) -> str:
        if self.tender_value in (None, ""):
            return self.extra.get("value") or "Ref Document"
        return str(self.tender_value)

    def display_emd(self) -> str:
        if self.emd in (None, ""):
            return "—"
        return str(self.emd)


SNAPSHOT_FIELDS: Tuple[str, ...] = tuple(
    f.name for f in fields(Tender) if f.name != "extra"
)


@dataclass(frozen=True)
class QueryGroup:
    query_name: str = ""
    tenders: Tuple[Tender, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryGroup":
        if not isinstance(data, dict):
            raise TypeError(f"query must be an object, got {type(data).__name__}")
        tenders = tuple(Tender.from_dict(t) for t in (data.get("tenders") or []))
        extra = {k: v for k, v in data.items() if k not in ("query_name", "tenders")}
        return cls(query_name=data.get("query_name") or "", tenders=tenders, extra=extra)

    def to_dict(self, snapshot: bool = False, limit: Optional[int] = None) -> Dict[str, Any]:
        tenders = self.tenders if limit is None else self.tenders[:limit]
        out = dict(self.extra)
        out["query_name"] = self.query_name
        out["tenders"] = [
            t.to_snapshot_dict() if snapshot else t.to_dict() for t in tenders
        ]
        return out


@dataclass(frozen=True)
class Report:
    queries: Tuple[QueryGroup, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        if not isinstance(data, dict):
            raise TypeError(f"report must be an object, got {type(data).__name__}")
        queries = tuple(QueryGroup.from_dict(q) for q in (data.get("queries") or []))
        extra = {k: v for k, v in data.items() if k != "queries"}
        return cls(queries=queries, extra=extra)

    @classmethod
    def empty(cls) -> "Report":
        return cls(queries=(QueryGroup(),))

    def to_dict(self, snapshot: bool = False, limit: Optional[int] = None) -> Dict[str, Any]:
        out = dict(self.extra)
        out["queries"] = [q.to_dict(snapshot=snapshot, limit=limit) for q in self.queries]
        return out

    def total_tenders(self) -> int:
        return sum(len(q.tenders) for q in self.queries)

    def all_tenders(self) -> List[Tender]:
        return [t for q in self.queries for t in q.tenders]


def parse_batch(data: Dict[str, Any]) -> List[Tender]:
    """Turn a `batch` event payload ({"data": [...]}) into Tender objects."""
    if not isinstance(data, dict) or not isinstance(data.get("data"), list):
        raise ValueError("batch payload must be an object with a 'data' list")
    return [Tender.from_dict(t) for t in data["data"]]


@dataclass(frozen=True)
class CacheEntry:
    report: Report
    status: StreamStatus
    timestamp: float          # epoch millis

    def age_ms(self, now_ms: float) -> float:
        return now_ms - self.timestamp


# ── Scrape runs (REST side of the scraper API) ────────────────────────────────

@dataclass
class ScrapeRun:
    id: str = ""
    run_at: Optional[str] = None
    tender_release_date: Optional[str] = None
    date_str: Optional[str] = None
    name: Optional[str] = None
    company: Optional[str] = None
    contact: Optional[str] = None
    no_of_new_tenders: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapeRun":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class ScrapeRunDetails(ScrapeRun):
    queries: List[Dict[str, Any]] = field(default_factory=list)
