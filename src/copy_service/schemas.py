from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from exchange_connector_base import PositionSnapshot, ScalingMode


class ExecuteRequest(BaseModel):
    """Optional overrides for executing a confirmed preview"""
    order_timeout_seconds: Optional[float] = Field(default=None, ge=0.1, le=300)


class RebalanceCheckRequest(BaseModel):
    """Inputs for comparing a stored ratio with the source's current positions"""
    account_id: str = 'default'
    source_wallet: str
    available_balance: Decimal = Field(ge=0)
    allocation_fraction: Decimal = Field(gt=0, le=1)
    existing_user_positions: List[PositionSnapshot] = Field(default_factory=list)
    platform: Optional[str] = None
    scaling_mode: ScalingMode = 'proportional'


class BalanceUpdate(BaseModel):
    available_balance: Decimal = Field(ge=0)


class WatchRequest(BaseModel):
    account_id: str = 'default'
    source_wallet: str
    allocation_fraction: Decimal = Field(gt=0, le=1)
