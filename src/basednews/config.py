"""Configuration models and helpers for the BasedNews service."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Mapping

from pydantic import BaseModel, Field, ValidationError

__all__ = [
    "AppConfig",
    "DATA_DIR",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_IMAGE_POOLS",
    "ImagePool",
    "ImagePoolsConfig",
]

DATA_DIR = Path(__file__).resolve().parents[2] / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{DATA_DIR / 'basednews.db'}"

_UNSPLASH = "https://images.unsplash.com/{photo}?w=800&h=400&fit=crop&q=80"


class ImagePool(BaseModel):
    """A keyword group and the illustrative images used for matching titles."""

    name: str = Field(..., description="Pool label, e.g. 'bitcoin'")
    keywords: List[str] = Field(
        default_factory=list,
        description="Lower-case title fragments that select this pool",
    )
    urls: List[str] = Field(..., min_length=1, description="Candidate image URLs")

    def matches(self, title: str) -> bool:
        """Return ``True`` when any keyword occurs in ``title``."""

        lowered = title.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords if keyword)


class ImagePoolsConfig(BaseModel):
    """Ordered keyword pools plus the general pool used when nothing matches."""

    pools: List[ImagePool] = Field(default_factory=list)
    general: ImagePool

    @classmethod
    def from_file(cls, path: Path | str) -> "ImagePoolsConfig":
        """Load an image pool table from a JSON file."""

        config_path = Path(path)
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise FileNotFoundError(f"Configuration file not found: {config_path}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in configuration file: {config_path}") from exc

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Configuration file is invalid: {config_path}\n{exc}") from exc

    def dump(self, path: Path | str) -> None:
        """Persist the pool table to disk as JSON."""

        config_path = Path(path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    def pool_for(self, title: str | None) -> ImagePool:
        """Return the first pool matching ``title``, else the general pool."""

        if title:
            for pool in self.pools:
                if pool.matches(title):
                    return pool
        return self.general


DEFAULT_IMAGE_POOLS = ImagePoolsConfig(
    pools=[
        ImagePool(
            name="bitcoin",
            keywords=["bitcoin", "btc"],
            urls=[
                _UNSPLASH.format(photo="photo-1640161704729-cbe966a08476"),
                _UNSPLASH.format(photo="photo-1621761191319-c6fb62004040"),
                _UNSPLASH.format(photo="photo-1605792657660-596af9009e82"),
            ],
        ),
        ImagePool(
            name="ethereum",
            keywords=["ethereum", "eth"],
            urls=[
                _UNSPLASH.format(photo="photo-1639762681485-074b7f938ba0"),
                _UNSPLASH.format(photo="photo-1644361567989-a8492747ca36"),
                _UNSPLASH.format(photo="photo-1644361566696-3d442b5b482a"),
            ],
        ),
        ImagePool(
            name="defi",
            keywords=["defi", "yield", "staking"],
            urls=[
                _UNSPLASH.format(photo="photo-1621504450181-5d356f61d307"),
                _UNSPLASH.format(photo="photo-1622630998477-20aa696ecb05"),
                _UNSPLASH.format(photo="photo-1620321023374-d1a68fbc720d"),
            ],
        ),
        ImagePool(
            name="trading",
            keywords=["trading", "market", "price"],
            urls=[
                _UNSPLASH.format(photo="photo-1611974789855-9c2a0a7236a3"),
                _UNSPLASH.format(photo="photo-1642543492481-44e81e3914a7"),
                _UNSPLASH.format(photo="photo-1590283603385-17ffb3a7f29f"),
            ],
        ),
        ImagePool(
            name="nft",
            keywords=["nft", "art", "collection"],
            urls=[
                _UNSPLASH.format(photo="photo-1646463535376-c2d3d3fe5d72"),
                _UNSPLASH.format(photo="photo-1645680827507-9f392edae51c"),
                _UNSPLASH.format(photo="photo-1644088379091-d574269d422f"),
            ],
        ),
    ],
    general=ImagePool(
        name="general",
        urls=[
            _UNSPLASH.format(photo="photo-1640161704729-cbe966a08476"),
            _UNSPLASH.format(photo="photo-1639762681485-074b7f938ba0"),
            _UNSPLASH.format(photo="photo-1518544866727-e41b5c2ca7cf"),
            _UNSPLASH.format(photo="photo-1559526324-4b87b5e36e44"),
            _UNSPLASH.format(photo="photo-1642790106117-e829e14a795f"),
        ],
    ),
)


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class AppConfig(BaseModel):
    """Runtime settings read from the environment."""

    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    cryptocompare_api_key: str = Field(
        default="demo",
        description="Passed as the api_key query parameter; 'demo' when unset",
    )
    cryptopanic_api_key: str | None = None
    reddit_client_id: str | None = None
    reddit_client_secret: str | None = None
    twitter_bearer_token: str | None = None
    openai_api_key: str | None = None
    news_subreddit: str = Field(default="CryptoCurrency")
    scheduler_enabled: bool = Field(default=True)
    scheduler_startup_delay: float = Field(default=5.0, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    image_pools_path: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build the configuration from ``environ`` (defaults to ``os.environ``)."""

        env = os.environ if environ is None else environ

        def _get(name: str) -> str | None:
            value = env.get(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        data: dict[str, object] = {
            "scheduler_enabled": _env_flag(env.get("SCHEDULER_ENABLED"), True),
        }
        optional = {
            "database_url": "DATABASE_URL",
            "cryptocompare_api_key": "CRYPTOCOMPARE_API_KEY",
            "cryptopanic_api_key": "CRYPTOPANIC_API_KEY",
            "reddit_client_id": "REDDIT_CLIENT_ID",
            "reddit_client_secret": "REDDIT_CLIENT_SECRET",
            "twitter_bearer_token": "TWITTER_BEARER_TOKEN",
            "openai_api_key": "OPENAI_API_KEY",
            "news_subreddit": "NEWS_SUBREDDIT",
            "scheduler_startup_delay": "SCHEDULER_STARTUP_DELAY",
            "request_timeout": "REQUEST_TIMEOUT",
            "image_pools_path": "IMAGE_POOLS_PATH",
        }
        for field_name, env_name in optional.items():
            value = _get(env_name)
            if value is not None:
                data[field_name] = value

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Environment configuration is invalid:\n{exc}") from exc

    @property
    def reddit_configured(self) -> bool:
        return bool(self.reddit_client_id and self.reddit_client_secret)

    def load_image_pools(self) -> ImagePoolsConfig:
        """Return the configured image pool table, or the built-in one."""

        if self.image_pools_path is None:
            return DEFAULT_IMAGE_POOLS
        return ImagePoolsConfig.from_file(self.image_pools_path)
