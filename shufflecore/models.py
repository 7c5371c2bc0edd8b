"""Pydantic models shared across the application."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class SpacingPolicy(str, Enum):
    """How the minimum gap between two tracks of one artist is chosen."""

    ADAPTIVE = "adaptive"  # total // bucket size
    FIXED = "fixed"  # ShuffleConfig.min_gap for every artist


class FavouriteMode(str, Enum):
    """What a favourite's extra weight means for the output."""

    WEIGHT = "weight"  # emitted once, picked earlier / more eagerly
    DUPLICATE = "duplicate"  # emitted ``weight`` times


class Track(BaseModel):
    """A single resolved playlist entry."""

    identity: str  # path exactly as it will be written out
    artist: str = ""
    weight: int = Field(default=1, ge=0)


class ArtistBucket(BaseModel):
    """All remaining tracks of one artist key (drained by the interleaver)."""

    artist: str
    tracks: List[Track] = Field(default_factory=list)

    @property
    def total_weight(self) -> int:
        """Sum of the weights of the tracks still in the bucket."""
        return sum(t.weight for t in self.tracks)

    def __len__(self) -> int:
        return len(self.tracks)


class ShuffleConfig(BaseModel):
    """Immutable knobs for one shuffle run."""

    seed: Optional[int] = None  # None = seeded from system entropy
    spacing: SpacingPolicy = SpacingPolicy.ADAPTIVE
    min_gap: int = Field(default=2, ge=1)
    favourite_weight: int = Field(default=2, ge=1)
    favourite_mode: FavouriteMode = FavouriteMode.WEIGHT
    dominance_share: float = Field(default=0.5, gt=0.0, le=1.0)

    model_config = {"frozen": True}


class Playlist(BaseModel):
    """The final ordering of track identities."""

    identities: Tuple[str, ...] = ()
    forced: Tuple[int, ...] = ()  # positions where the spacing floor was relaxed

    model_config = {"frozen": True}

    def __len__(self) -> int:
        return len(self.identities)


class ExportPayload(BaseModel):
    """JSON export of a shuffled playlist."""

    tracks: List[str]
    seed: Optional[int] = None
    spacing: str = SpacingPolicy.ADAPTIVE.value
    favourite_mode: str = FavouriteMode.WEIGHT.value
    forced: List[int] = Field(default_factory=list)
    exported_at: str = ""

    model_config = {
        "json_schema_extra": {
            "description": "Shuffled playlist export, one identity per track slot."
        }
    }
