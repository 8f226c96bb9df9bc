from datetime import datetime, timezone
from typing import Callable, Optional

from chatsnap.models.record import ConversationRecord

DEFAULT_MODEL_TAG = "ChatGPT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def byte_length(markup: str) -> int:
    """Return the UTF-8 encoded size of *markup*."""
    return len(markup.encode("utf-8"))


def iso_timestamp(moment: datetime) -> str:
    """Format *moment* as an ISO-8601 UTC string with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ResultBuilder:
    def __init__(self, model_tag: str = DEFAULT_MODEL_TAG, clock: Optional[Callable[[], datetime]] = None) -> None:
        self.model_tag = model_tag
        self.clock = clock or _utcnow

    def build(self, markup: str, source_html_bytes: int) -> ConversationRecord:
        """Package *markup* into a :class:`ConversationRecord`.

        *source_html_bytes* is the size of the markup the pipeline started
        from, not of *markup*; see :func:`byte_length`.
        """
        return ConversationRecord(
            model=self.model_tag,
            content=markup,
            scraped_at=iso_timestamp(self.clock()),
            source_html_bytes=source_html_bytes,
        )
