from pydantic import BaseModel
from typing import List

from workforce.schemas.analysis import SkillMap


class FitScoreRequest(BaseModel):
    skills: List[str]
    experience: str = ""
    skill_map: SkillMap


class SkillMapRequest(BaseModel):
    name: str
    description: str = ""


class SkillMapResponse(BaseModel):
    skill_map: SkillMap
    used_ai: bool
