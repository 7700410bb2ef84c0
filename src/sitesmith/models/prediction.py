"""Asynchronous generation job models."""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

# Statuses after which the job never changes again
TERMINAL_STATUSES = frozenset({"succeeded", "failed", "canceled"})


class Prediction(BaseModel):
    """Job handle returned by the video endpoint."""

    # Upstream returns many more fields (urls, logs, metrics...)
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="Prediction identifier")
    status: str = Field("starting", description="starting, processing, succeeded, failed...")
    output: Optional[Any] = Field(None, description="Result URL list on success")
    error: Optional[Any] = Field(None, description="Upstream error on failure")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    def output_urls(self) -> List[str]:
        """Output normalised to a list (some models return a bare URL)."""
        if self.output is None:
            return []
        if isinstance(self.output, str):
            return [self.output] if self.output else []
        if not isinstance(self.output, list):
            return []
        return [item for item in self.output if isinstance(item, str) and item]
