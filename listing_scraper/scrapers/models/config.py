import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_DELAY_RANGES: dict[str, tuple[int, int]] = {
    "page_load": (2000, 5000),
    "search": (1500, 4000),
    "click": (300, 800),
    "scroll": (500, 1500),
    "image": (800, 2500),
    "typing": (200, 300),
}


class AcquisitionConfig(BaseModel):
    """Configuration for the product acquisition pipeline."""

    base_url: str = Field("https://www.amazon.com", description="Catalog site root")
    hourly_limit: int = Field(15, description="Product acquisitions allowed per hour")
    error_rate_threshold: float = Field(
        0.10, description="Error ratio above which admission is paused"
    )
    error_cooldown_seconds: int = Field(
        300, description="Suggested wait when the error-rate breaker is open"
    )
    identity_rotation_seconds: int = Field(
        1800, description="Age after which the browser identity is rotated"
    )
    fetch_timeout: float = Field(10.0, description="Timeout in seconds for page fetches")
    image_timeout: float = Field(8.0, description="Timeout in seconds for image downloads")
    max_images: int = Field(12, description="Maximum images acquired per product")
    backoff_base_ms: int = Field(1000, description="Base of the exponential backoff")
    backoff_cap_ms: int = Field(60000, description="Ceiling of the exponential backoff")
    price_discount: float = Field(
        0.25, description="Discount applied to the source price for the listing price"
    )
    default_quantity: int = Field(1, description="Quantity recorded for new products")
    simulate_human: bool = Field(
        True, description="Whether to sleep between actions to mimic human cadence"
    )
    delay_ranges: dict[str, tuple[int, int]] = Field(
        default_factory=lambda: dict(DEFAULT_DELAY_RANGES),
        description="Per action kind [min, max] delay in milliseconds",
    )

    @field_validator("delay_ranges")
    @classmethod
    def _check_delay_ranges(cls, value: dict[str, tuple[int, int]]) -> dict[str, tuple[int, int]]:
        merged = dict(DEFAULT_DELAY_RANGES)
        merged.update(value)
        for kind, (low, high) in merged.items():
            if low < 0 or low > high:
                raise ValueError(f"Invalid delay range for '{kind}': [{low}, {high}]")
        return merged

    @field_validator("price_discount")
    @classmethod
    def _check_discount(cls, value: float) -> float:
        if not 0 <= value < 1:
            raise ValueError("price_discount must be in [0, 1)")
        return value

    @field_validator("hourly_limit", "max_images")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @classmethod
    def from_env(cls, **overrides: Any) -> "AcquisitionConfig":
        """Build a config from the environment (and a .env file if present).

        ``LISTING_<FIELD>`` variables override defaults; ``DEFAULT_PRICE_DISCOUNT``
        and ``DEFAULT_QUANTITY`` are honoured as well.
        """
        load_dotenv()
        values: dict[str, Any] = {}

        if os.getenv("DEFAULT_PRICE_DISCOUNT"):
            values["price_discount"] = os.getenv("DEFAULT_PRICE_DISCOUNT")
        if os.getenv("DEFAULT_QUANTITY"):
            values["default_quantity"] = os.getenv("DEFAULT_QUANTITY")

        for name in cls.model_fields:
            if name == "delay_ranges":
                continue
            env_value = os.getenv(f"LISTING_{name.upper()}")
            if env_value is not None:
                values[name] = env_value

        if "simulate_human" in values:
            values["simulate_human"] = str(values["simulate_human"]).lower() == "true"

        values.update(overrides)
        return cls(**values)


class StorageConfig(BaseModel):
    """Where the reference sinks keep products and images."""

    database_path: str = Field(
        "data/databases/listings.db", description="SQLite database for products"
    )
    image_dir: str = Field("data/images", description="Directory for stored images")
    public_base_url: str = Field(
        "file://data/images", description="Prefix used to build public image URLs"
    )

    @classmethod
    def from_env(cls) -> "StorageConfig":
        load_dotenv()
        values = {}
        for name in cls.model_fields:
            env_value = os.getenv(f"LISTING_{name.upper()}")
            if env_value is not None:
                values[name] = env_value
        return cls(**values)
