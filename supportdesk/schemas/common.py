from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class HealthResponse(BaseModel):
    status: str
    app_env: str


class MetricsResponse(BaseModel):
    escalations_pending: int
    escalations_accepted: int
    tickets_open: int
