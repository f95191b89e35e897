from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class QueryInfo(BaseModel):
    name: str
    tier: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    name: str
    tier: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    row_count: int
    truncated: bool = False


class PlanReport(BaseModel):
    dialect: str
    node_types: List[str]
    uses_index: bool
    index_names: List[str] = Field(default_factory=list)
    total_cost: Optional[float] = None
    planning_time_ms: Optional[float] = None
    execution_time_ms: Optional[float] = None
    raw: Any = None


class IndexExperiment(BaseModel):
    artist: str
    without_index: PlanReport
    with_index: PlanReport
    results_match: bool
    row_count: int


class HealthCheck(BaseModel):
    status: str
    version: str
    timestamp: str
