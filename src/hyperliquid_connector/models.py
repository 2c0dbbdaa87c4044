from decimal import Decimal
from pydantic import BaseModel
from datetime import datetime


class CachedPrice(BaseModel):
    """Cached mid price with timestamp for TTL validation"""
    symbol: str
    price: Decimal
    cached_at: datetime
