from pydantic import BaseModel


class StepTotal(BaseModel):
    user_id: str
    total_steps: int = 0
    total_distance_meters: float = 0.0
