"""
Pydantic model for the resolved extractor command.
"""
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict


class ExtractorLocation(BaseModel):
    """How to launch yt-dlp, resolved once at startup."""

    command: Tuple[str, ...]
    origin: str

    model_config = ConfigDict(frozen=True)

    def argv(self, *args: str) -> List[str]:
        """Full argument vector for one invocation."""
        return [*self.command, *args]
