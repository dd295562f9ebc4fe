"""
Application and Search State Models
@file purpose: Mutable per-automation bookkeeping for the job currently
being applied to and the search it belongs to
"""

import time
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from shared.models.automation_status import ApplicationPhase, SubmissionStatus


class SubmittedLink(BaseModel):
    """One entry of submittedLinks"""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    status: SubmissionStatus = SubmissionStatus.PROCESSING
    details: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    def to_message(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_none=True)
        data["status"] = self.status.value
        return data


class SearchData(BaseModel):
    """Search task handed out by the background handler"""

    model_config = ConfigDict(populate_by_name=True)

    limit: int = 10
    current: int = 0
    domain: List[str] = Field(default_factory=list)
    submitted_links: List[SubmittedLink] = Field(
        default_factory=list, alias="submittedLinks"
    )
    search_link_pattern: Optional[str] = Field(None, alias="searchLinkPattern")

    def to_message(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "current": self.current,
            "domain": list(self.domain),
            "submittedLinks": [link.to_message() for link in self.submitted_links],
            "searchLinkPattern": self.search_link_pattern,
        }


class ApplicationState(BaseModel):
    """State of the application currently being worked on by one automation"""

    is_application_in_progress: bool = False
    application_start_time: Optional[float] = None
    application_url: Optional[str] = None
    processed_urls: Set[str] = Field(default_factory=set)
    processed_links_count: int = 0
    form_detected: bool = False
    current_redirect_attempts: int = 0
    current_job: Optional[Dict[str, Any]] = None
    phase: ApplicationPhase = ApplicationPhase.IDLE

    def start(self, url: str, job: Optional[Dict[str, Any]] = None, now: float = None):
        self.is_application_in_progress = True
        self.application_start_time = now if now is not None else time.time()
        self.application_url = url
        self.current_job = job
        self.processed_urls.add(url)

    def reset(self):
        """Clear per-job flags; processed URLs and counters survive"""
        self.is_application_in_progress = False
        self.application_start_time = None
        self.application_url = None
        self.form_detected = False
        self.current_redirect_attempts = 0
        self.current_job = None
        self.phase = ApplicationPhase.IDLE

    def elapsed(self, now: float = None) -> float:
        if not self.application_start_time:
            return 0.0
        now = now if now is not None else time.time()
        return now - self.application_start_time
