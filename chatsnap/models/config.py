from typing import Literal, Optional

from pydantic import BaseModel, Field

PRIMARY_TURN_SELECTOR = 'article[data-testid^="conversation-turn"]'
# Share pages rendered before the <article> turn markup shipped
FALLBACK_TURN_SELECTOR = "div[data-message-author-role], div.message"

FailedLinkPolicy = Literal["keep", "drop"]


class PipelineConfig(BaseModel):
    """Knobs for one capture run.  Every field has a working default."""

    primary_selector: str = Field(
        default=PRIMARY_TURN_SELECTOR,
        description="CSS selector for conversation-turn containers.",
    )
    fallback_selector: str = Field(
        default=FALLBACK_TURN_SELECTOR,
        description="Legacy selector tried when the primary one matches nothing.",
    )
    inline_fonts: bool = True
    import_depth: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Maximum nesting of @import rules that get expanded (0 = none).",
    )
    failed_link_policy: FailedLinkPolicy = "keep"
    """What to do with a ``<link rel="stylesheet">`` whose sheet could not be fetched.

    ``"keep"`` (default)
        Leave the link in place.  The document renders correctly only online.

    ``"drop"``
        Remove the link so the artifact never reaches out to the network.
    """
    fetch_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-resource timeout in seconds for stylesheet and font fetches.",
    )
    max_concurrent_fetches: int = Field(default=8, ge=1, le=64)
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL for relative stylesheet links when the source is raw markup.",
        examples=["https://chatgpt.com/share/abc"],
    )
    model_tag: str = "ChatGPT"
    wrapper_max_width: str = "46rem"
    parser: Literal["lxml", "html.parser"] = "lxml"
