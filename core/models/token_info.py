"""TokenInfo model."""

from pydantic import BaseModel


class TokenInfo(BaseModel):
    input: int = 0
    output: int = 0
    reasoning: int = 0
    cache_read: int = 0
    cache_write: int = 0
    total: int | None = None

    def used(self) -> int:
        """Tokens counted against the context window."""
        if self.total is not None:
            return self.total
        return self.input + self.output + self.cache_read + self.cache_write
