"""
Contract between the session layer and the browser board.

Plain data that crosses the boundary between `src.services` and `src.automation`.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BotListing:
    """A bot tile as scraped from one page of the bot selection list (no catalog id yet)."""

    name: str
    rating: Optional[str]
    is_engine: bool
    avatar: Optional[str] = None
    classification: Optional[str] = None


@dataclass(frozen=True)
class BotEntry:
    """A bot in the process-wide catalog. `id` is its position in the catalog."""

    id: int
    name: str
    rating: Optional[str]
    is_engine: bool
    avatar: Optional[str] = None
    classification: Optional[str] = None

    @classmethod
    def from_listing(cls, bot_id: int, listing: BotListing) -> "BotEntry":
        return cls(
            id=bot_id,
            name=listing.name,
            rating=listing.rating,
            is_engine=listing.is_engine,
            avatar=listing.avatar,
            classification=listing.classification,
        )


@dataclass(frozen=True)
class BotRef:
    """The opponent currently shown next to the board"""

    name: str
    rating: Optional[str] = None
    avatar: Optional[str] = None

    def describe(self) -> str:
        return f"{self.name} (Rating: {self.rating})"
