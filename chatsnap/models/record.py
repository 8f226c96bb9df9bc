from pydantic import BaseModel, ConfigDict, Field


class ConversationRecord(BaseModel):
    """Output of one capture: the self-contained transcript plus capture metadata."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    model: str
    content: str  # self-contained HTML document
    scraped_at: str = Field(alias="scrapedAt")  # ISO-8601, UTC
    source_html_bytes: int = Field(alias="sourceHtmlBytes", ge=0)
    """UTF-8 byte length of the markup handed to the pipeline, before any transform."""
