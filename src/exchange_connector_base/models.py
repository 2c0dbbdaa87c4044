from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Side = Literal['long', 'short']
ScalingMode = Literal['proportional', 'minimum_enforced']


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Source/user portfolio models
class PositionSnapshot(BaseModel):
    """One open position of a wallet at a point in time"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Side
    notional_value: Decimal
    leverage: Decimal = Decimal('1')
    size: Optional[Decimal] = None
    entry_price: Optional[Decimal] = None

    @field_validator('symbol')
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("symbol must not be empty")
        return v

    @field_validator('leverage')
    @classmethod
    def validate_leverage(cls, v: Decimal) -> Decimal:
        if v < 1:
            raise ValueError(f"leverage must be >= 1, got {v}")
        return v


def _reject_duplicate_symbols(positions: List[PositionSnapshot], field: str):
    seen = set()
    for pos in positions:
        if pos.symbol in seen:
            raise ValueError(f"Duplicate symbol {pos.symbol} in {field}")
        seen.add(pos.symbol)


class PositionCopyRequest(BaseModel):
    """A user's request to replicate a source portfolio"""
    model_config = ConfigDict(frozen=True)

    source_portfolio: List[PositionSnapshot] = Field(default_factory=list)
    available_balance: Decimal = Field(ge=0)
    allocation_fraction: Decimal = Field(gt=0, le=1)
    existing_user_positions: List[PositionSnapshot] = Field(default_factory=list)
    account_id: str = 'default'
    source_wallet: Optional[str] = None
    platform: Optional[str] = None
    scaling_mode: ScalingMode = 'proportional'

    @model_validator(mode='after')
    def validate_symbol_index(self) -> 'PositionCopyRequest':
        _reject_duplicate_symbols(self.source_portfolio, 'source_portfolio')
        _reject_duplicate_symbols(self.existing_user_positions, 'existing_user_positions')
        return self

    @property
    def allocated_capital(self) -> Decimal:
        """Capital the user committed to this copy operation"""
        return self.available_balance * self.allocation_fraction

    def existing_position_map(self) -> Dict[str, PositionSnapshot]:
        return {pos.symbol: pos for pos in self.existing_user_positions}


# Distribution and preview models
class PositionDistribution(BaseModel):
    """Share of the source portfolio held in one symbol, mapped onto user capital"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Side
    percentage_of_portfolio: Decimal
    target_notional: Decimal
    target_size: Optional[Decimal] = None
    leverage: Decimal = Decimal('1')
    scaling_factor: Decimal = Decimal('1')


class ScaledPositionStatus:
    """Outcome of minimum-size scaling for one position"""
    PENDING = "pending"
    ADJUSTED = "adjusted"
    SKIPPED_BELOW_MINIMUM = "skipped_below_minimum"


class ScaledPosition(PositionDistribution):
    """Distribution entry after price lookup and minimum-size scaling"""
    price: Decimal
    proportional_notional: Decimal
    minimum_notional: Decimal
    status: Literal['pending', 'adjusted', 'skipped_below_minimum'] = ScaledPositionStatus.PENDING

    @property
    def is_executable(self) -> bool:
        return self.status != ScaledPositionStatus.SKIPPED_BELOW_MINIMUM


class Preview(BaseModel):
    """Go/no-go view of a copy operation, derived before any order is placed"""
    model_config = ConfigDict(frozen=True)

    preview_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    account_id: str
    source_wallet: Optional[str] = None
    platform: str
    scaling_mode: ScalingMode
    available_balance: Decimal
    allocation_fraction: Decimal
    allocated_capital: Decimal
    positions: List[ScaledPosition]
    total_notional: Decimal
    remaining_balance: Decimal
    skipped_count: int
    adjusted_count: int
    exceeds_allocation: bool = False
    warnings: List[str] = Field(default_factory=list)
    existing_user_positions: List[PositionSnapshot] = Field(default_factory=list)
    balance_version: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def executable_positions(self) -> List[ScaledPosition]:
        return [p for p in self.positions if p.is_executable]

    def content_equals(self, other: 'Preview') -> bool:
        """Compare two previews ignoring identity and timestamp"""
        exclude = {'preview_id', 'created_at'}
        return self.model_dump(exclude=exclude) == other.model_dump(exclude=exclude)


# Order models
class OrderFill(BaseModel):
    """Fill reported by the order execution collaborator"""
    filled_size: Decimal
    entry_price: Decimal
    order_id: Optional[str] = None


class ExecutionStatus:
    """Per-position execution outcomes"""
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED_BELOW_MINIMUM = "skipped_below_minimum"
    CANCELLED = "cancelled"


class BatchStatus:
    """Aggregate outcome of one copy operation"""
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ABORTED = "aborted"


class ExecutionResult(BaseModel):
    """Outcome of one attempted (or deliberately not attempted) order"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Side
    status: Literal['succeeded', 'failed', 'skipped_below_minimum', 'cancelled']
    requested_size: Decimal
    actual_size: Decimal = Decimal('0')
    actual_entry_price: Optional[Decimal] = None
    error_reason: Optional[str] = None
    merged_size: Optional[Decimal] = None
    merged_entry_price: Optional[Decimal] = None
    order_id: Optional[str] = None

    @property
    def filled_notional(self) -> Decimal:
        if self.actual_entry_price is None:
            return Decimal('0')
        return self.actual_size * self.actual_entry_price


class ExecutionBatch(BaseModel):
    """Immutable record of every order attempt made for one copy request"""
    model_config = ConfigDict(frozen=True)

    batch_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    preview_id: Optional[str] = None
    account_id: str
    status: Literal['all_succeeded', 'partial', 'aborted']
    results: List[ExecutionResult]
    cancelled: bool = False
    started_at: datetime
    completed_at: datetime

    @property
    def succeeded(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.status == ExecutionStatus.SUCCEEDED]

    @property
    def failed(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.status == ExecutionStatus.FAILED]

    @property
    def skipped(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.status == ExecutionStatus.SKIPPED_BELOW_MINIMUM]

    @property
    def filled_notional(self) -> Decimal:
        return sum((r.filled_notional for r in self.succeeded), Decimal('0'))


# Ratio tracking models
class StoredDistribution(BaseModel):
    """Distribution captured at copy time for one source wallet"""
    model_config = ConfigDict(frozen=True)

    account_id: str
    source_wallet: str
    entries: List[PositionDistribution]
    captured_at: datetime = Field(default_factory=_utcnow)


class RebalanceDelta(BaseModel):
    """Change in one symbol's share of the source portfolio"""
    model_config = ConfigDict(frozen=True)

    symbol: str
    side: Side
    stored_percentage: Decimal
    current_percentage: Decimal
    delta_percentage: Decimal
    is_new: bool = False
    is_closed: bool = False
    side_changed: bool = False


class RebalanceProposal(BaseModel):
    """Suggested adjustment; never executed without user confirmation"""
    model_config = ConfigDict(frozen=True)

    source_wallet: Optional[str] = None
    deltas: List[RebalanceDelta]
    max_abs_delta: Decimal
    requires_rebalance: bool
    proposed_request: Optional[PositionCopyRequest] = None
    created_at: datetime = Field(default_factory=_utcnow)
