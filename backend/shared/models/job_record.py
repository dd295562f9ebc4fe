"""
Job Record Model
Represents one scraped job listing, shared by every platform automation
"""

import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class JobRecord(BaseModel):
    """
    Job record scraped from a listing or a job page

    Field names are snake_case in Python; ``to_message()`` produces the
    camelCase shape that travels over ports and to the tracking API.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    title: str = ""
    company: str = ""
    location: str = ""
    salary: Optional[str] = None
    job_url: str = Field("", alias="jobUrl")
    platform: str = ""
    extracted_at: int = Field(default_factory=_now_ms, alias="extractedAt")
    description: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        """Serialize with the wire (camelCase) field names"""
        return self.model_dump(by_alias=True, exclude_none=True)
