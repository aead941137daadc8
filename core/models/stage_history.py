"""Stage history domain model. Append-only; rows are never updated."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from core.models.stage import Stage


class StageHistory(BaseModel):
    """One recorded transition. from_stage is None only for the creation row."""

    id: UUID
    lead_id: UUID
    from_stage: Stage | None
    to_stage: Stage
    changed_at: datetime
    note: str | None

    model_config = {"from_attributes": True}
