"""Pydantic models for application configuration with validation."""

from decimal import Decimal
from typing import Dict, Literal, Optional
from pydantic import BaseModel, Field, field_validator


class TradingConfig(BaseModel):
    """Copy calculation and order execution parameters."""

    default_platform: str = Field(
        default="hyperliquid",
        description="Platform used when a copy request does not name one"
    )
    scaling_mode: Literal["proportional", "minimum_enforced"] = Field(
        default="proportional",
        description="Default handling of positions below the platform minimum"
    )
    currency_decimals: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Decimal places of the minimal currency unit for notionals"
    )
    size_decimals: int = Field(
        default=8,
        ge=0,
        le=18,
        description="Decimal places order sizes are truncated to"
    )
    percentage_tolerance: Decimal = Field(
        default=Decimal("0.000001"),
        gt=0,
        le=Decimal("0.01"),
        description="Tolerance when checking that portfolio percentages sum to 1"
    )
    order_timeout_seconds: float = Field(
        default=10.0,
        ge=0.1,
        le=300.0,
        description="Default timeout for a single order submission"
    )
    max_leverage: Decimal = Field(
        default=Decimal("50"),
        ge=1,
        le=200,
        description="Highest leverage accepted on a copied position"
    )

    @property
    def currency_quantum(self) -> Decimal:
        """Smallest currency unit as a Decimal exponent (e.g. 0.01)."""
        return Decimal(1).scaleb(-self.currency_decimals)

    @property
    def size_quantum(self) -> Decimal:
        """Smallest order size increment as a Decimal exponent."""
        return Decimal(1).scaleb(-self.size_decimals)


class PlatformMinimumsConfig(BaseModel):
    """Minimum order notionals for one platform."""

    default_minimum_notional: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Minimum for symbols without a specific entry"
    )
    minimums: Dict[str, Decimal] = Field(
        default_factory=dict,
        description="Per-symbol minimum notional; '*' acts as a wildcard"
    )

    @field_validator("minimums")
    @classmethod
    def validate_minimums(cls, v: Dict[str, Decimal]) -> Dict[str, Decimal]:
        """Normalise symbols to upper case and reject negative minimums."""
        normalized = {}
        for symbol, minimum in v.items():
            if minimum < 0:
                raise ValueError(f"Minimum for {symbol} must not be negative")
            normalized[symbol.strip().upper()] = minimum
        return normalized


class RebalanceConfig(BaseModel):
    """Ratio tracking settings."""

    delta_threshold_percent: Decimal = Field(
        default=Decimal("5.0"),
        ge=0,
        le=100,
        description="Absolute percentage-point change that marks a proposal as actionable"
    )
    poll_interval_seconds: int = Field(
        default=30,
        ge=5,
        le=86400,
        description="Default cadence for the optional rebalance monitor"
    )


class HyperliquidConfig(BaseModel):
    """Hyperliquid info API settings."""

    api_url: str = Field(
        default="https://api.hyperliquid.xyz/info",
        description="Info endpoint used for positions and mid prices"
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout for info API requests"
    )
    price_cache_ttl_seconds: int = Field(
        default=3,
        ge=0,
        le=300,
        description="How long mid prices are reused before refresh"
    )
    price_stale_after_seconds: int = Field(
        default=60,
        ge=1,
        le=3600,
        description="Cached prices older than this are rejected as stale"
    )


class ServiceConfig(BaseModel):
    """HTTP service settings."""

    preview_ttl_seconds: int = Field(
        default=900,
        ge=1,
        le=86400,
        description="Unexecuted previews older than this are discarded"
    )
    max_pending_previews: int = Field(
        default=1000,
        ge=1,
        le=100000,
        description="Oldest unexecuted previews are discarded beyond this count"
    )


class LoggingConfig(BaseModel):
    """Logging output settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )
    format: Literal["text", "json"] = Field(
        default="text",
        description="Log line format"
    )
    file_path: Optional[str] = Field(
        default=None,
        description="Daily-rotated log file; console only when unset"
    )
    backup_count: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Rotated log files kept"
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        return v.upper() if isinstance(v, str) else v


class AppConfig(BaseModel):
    """Root application configuration."""

    trading: TradingConfig = Field(
        default_factory=TradingConfig,
        description="Copy calculation and execution parameters"
    )
    platforms: Dict[str, PlatformMinimumsConfig] = Field(
        default_factory=lambda: {
            "hyperliquid": PlatformMinimumsConfig(default_minimum_notional=Decimal("10")),
            "moonlander": PlatformMinimumsConfig(default_minimum_notional=Decimal("12")),
        },
        description="Minimum order notionals per platform"
    )
    fallback_minimum_notional: Decimal = Field(
        default=Decimal("12"),
        ge=0,
        description="Minimum used when neither platform nor symbol has an entry"
    )
    rebalance: RebalanceConfig = Field(
        default_factory=RebalanceConfig,
        description="Ratio tracking settings"
    )
    hyperliquid: HyperliquidConfig = Field(
        default_factory=HyperliquidConfig,
        description="Hyperliquid info API settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )
    service: ServiceConfig = Field(
        default_factory=ServiceConfig,
        description="HTTP service settings"
    )

    @field_validator("platforms")
    @classmethod
    def lower_platform_names(cls, v: Dict[str, PlatformMinimumsConfig]) -> Dict[str, PlatformMinimumsConfig]:
        return {name.strip().lower(): cfg for name, cfg in v.items()}
