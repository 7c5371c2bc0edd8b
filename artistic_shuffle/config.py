"""Application settings loaded from the environment / .env via pydantic-settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from shufflecore.models import FavouriteMode, ShuffleConfig, SpacingPolicy

DEFAULT_AUDIO_EXTENSIONS = [
    ".aac", ".aif", ".aiff", ".ape", ".flac", ".m4a", ".mp3", ".mp4",
    ".mpc", ".oga", ".ogg", ".opus", ".wav", ".wma", ".wv",
]


class Settings(BaseSettings):
    """Central configuration; values come from ARTISTIC_SHUFFLE_* variables or .env."""

    # Shuffle
    seed: Optional[int] = None
    spacing: SpacingPolicy = SpacingPolicy.ADAPTIVE
    min_gap: int = Field(default=2, ge=1)
    dominance_share: float = Field(default=0.5, gt=0.0, le=1.0)

    # Favourites
    favourite_weight: int = Field(default=2, ge=1)
    favourite_mode: FavouriteMode = FavouriteMode.WEIGHT
    favourite_rating: int = Field(default=196, ge=0, le=255)  # POPM byte written for 4 stars

    # Input resolution
    workers: int = Field(default=8, ge=1)
    audio_extensions: List[str] = DEFAULT_AUDIO_EXTENSIONS  # empty = every file

    # Logging
    log_level: str = "WARNING"

    model_config = {
        "env_prefix": "ARTISTIC_SHUFFLE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def shuffle_config(self, **overrides) -> ShuffleConfig:
        """Build the frozen ShuffleConfig; ``None`` overrides keep the setting."""
        values = {
            "seed": self.seed,
            "spacing": self.spacing,
            "min_gap": self.min_gap,
            "favourite_weight": self.favourite_weight,
            "favourite_mode": self.favourite_mode,
            "dominance_share": self.dominance_share,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ShuffleConfig(**values)


@lru_cache
def get_settings() -> Settings:
    """Cached singleton so .env is read only once."""
    return Settings()
