"""
Server-sent-event transport for the tender feed.

The backend pushes three named events over one connection:
  initial_data  — the Report envelope (possibly from a backend-side cache)
  batch         — {"data": [tender, ...]}
  complete      — the stream is done
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import requests

logger = logging.getLogger(__name__)


class FeedConnectionError(Exception):
    """The push connection failed or dropped before `complete`."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class FeedEvent:
    event: str
    data: str
    id: Optional[str] = None


_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")


def split_lines(chunks: Iterable[bytes]) -> Iterator[str]:
    """
    Split a raw event-stream body into decoded lines.

    Only CRLF, LF and CR end a line; other Unicode separators can appear
    unescaped inside JSON strings. A CR at the end of a chunk is held back
    until the next chunk shows whether an LF follows it.
    """
    buf = b""
    for chunk in chunks:
        if not chunk:
            continue
        buf += chunk
        start = 0
        for m in _LINE_BREAK_RE.finditer(buf):
            if m.group() == b"\r" and m.end() == len(buf):
                break
            yield buf[start:m.start()].decode("utf-8", errors="replace")
            start = m.end()
        buf = buf[start:]

    if buf.endswith(b"\r"):
        buf = buf[:-1]
        yield buf.decode("utf-8", errors="replace")
    elif buf:
        # Unterminated last line; parse_event_stream drops it with its event.
        yield buf.decode("utf-8", errors="replace")


def parse_event_stream(lines: Iterable[str]) -> Iterator[FeedEvent]:
    """
    Turn the raw lines of a text/event-stream body into FeedEvents.

    A blank line dispatches the pending event. Lines starting with ":" are
    comments (keep-alives). An event still pending at EOF is dropped.
    """
    event_name = ""
    data_lines = []
    last_id = None

    for raw in lines:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        line = raw.rstrip("\r\n")

        if line == "":
            if data_lines:
                yield FeedEvent(
                    event=event_name or "message",
                    data="\n".join(data_lines),
                    id=last_id,
                )
            event_name = ""
            data_lines = []
            continue

        if line.startswith(":"):
            continue

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "event":
            event_name = value
        elif name == "data":
            data_lines.append(value)
        elif name == "id":
            last_id = value
        # "retry" and unknown fields are ignored


class FeedConnection:
    """One live HTTP connection to the tender feed."""

    def __init__(
        self,
        session: requests.Session,
        url: str,
        params: dict,
        connect_timeout: float,
    ) -> None:
        self.session = session
        self.url = url
        self.params = params
        self.connect_timeout = connect_timeout
        self._response: Optional[requests.Response] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def events(self) -> Iterator[FeedEvent]:
        """
        Yield events until the server closes the stream.

        Raises FeedConnectionError on HTTP errors and on network failures,
        unless close() was called first.
        """
        if self._closed:
            return
        try:
            # No read timeout: the server keeps the stream open between batches.
            resp = self.session.get(
                self.url,
                params=self.params,
                stream=True,
                timeout=(self.connect_timeout, None),
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            )
        except requests.RequestException as exc:
            raise FeedConnectionError(f"could not connect to feed: {exc}") from exc

        self._response = resp
        if self._closed:
            resp.close()
            return
        if resp.status_code >= 400:
            resp.close()
            raise FeedConnectionError(
                f"feed returned HTTP {resp.status_code}", status_code=resp.status_code
            )

        try:
            yield from parse_event_stream(split_lines(resp.iter_content(chunk_size=None)))
        except (requests.RequestException, AttributeError, ValueError) as exc:
            # AttributeError / ValueError: urllib3 raises these when the
            # response is closed from another thread mid-read.
            if self._closed:
                return
            raise FeedConnectionError(f"feed connection dropped: {exc}") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._response is not None:
            self._response.close()
            logger.debug("Feed connection closed: %s", self.url)
