from typing import List
from pydantic import BaseModel, Field
from exchange_connector_base import ScaledPosition


class ScalingResult(BaseModel):
    """Result of minimum-size scaling with warnings"""
    positions: List[ScaledPosition]
    warnings: List[str] = Field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return sum(1 for p in self.positions if not p.is_executable)

    @property
    def adjusted_count(self) -> int:
        return sum(1 for p in self.positions if p.status == 'adjusted')
