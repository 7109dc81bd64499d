"""Global configuration for the replay analysis service."""

import os
from dataclasses import dataclass, field


@dataclass
class ScoringConfig:
    """Weights and thresholds for position scoring and momentum detection."""

    roster_weight: float = 55.0
    hp_weight: float = 35.0
    matchup_cap: float = 5.0
    field_cap: float = 5.0
    neutral_band: float = 5.0
    turning_point_threshold: float = 15.0
    points_per_significance: float = 5.0


@dataclass
class FetcherConfig:
    """Configuration for the replay host client."""

    base_url: str = field(
        default_factory=lambda: os.getenv(
            "REPLAY_HOST_URL", "https://replay.pokemonshowdown.com"
        )
    )
    timeout: float = 10.0
    requests_per_second: float = 2.0
    format: str = "gen9ou"
    output_dir: str = "data/raw/replays"


@dataclass
class ServerConfig:
    """Configuration for the HTTP API."""

    host: str = field(default_factory=lambda: os.getenv("ANALYSIS_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("ANALYSIS_PORT", "8080")))
    cache_size: int = 256
    fetch_timeout: float = 15.0
    default_page_size: int = 10
    max_page_size: int = 100
    max_username_battles: int = 10


@dataclass
class Config:
    """Global configuration container."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


# Global config instance
config = Config()
