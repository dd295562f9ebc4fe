"""
User Profile Model
@file purpose: Typed view over the opaque user profile plus the merge rule
used whenever a new copy of the profile turns up
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


def merge_user_profiles(*profiles: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Shallow merge of profile mappings, applied left to right

    A key takes the value from the last profile where it is not None, so a
    later partial profile never blanks out a field an earlier one filled.
    """
    merged: Dict[str, Any] = {}
    for profile in profiles:
        if not profile:
            continue
        for key, value in profile.items():
            if value is not None:
                merged[key] = value
            elif key not in merged:
                merged[key] = None
    return merged


class UserProfile(BaseModel):
    """Common profile fields with their camelCase wire names"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    user_id: Optional[str] = Field(None, alias="userId")
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    phone_country_code: Optional[str] = Field(None, alias="phoneCountryCode")
    country: Optional[str] = None
    city: Optional[str] = None
    current_company: Optional[str] = Field(None, alias="currentCompany")
    years_of_experience: Optional[Any] = Field(None, alias="yearsOfExperience")
    linkedin_url: Optional[str] = Field(None, alias="linkedIn")
    website: Optional[str] = None
    job_preferences: Optional[Dict[str, Any]] = Field(None, alias="jobPreferences")
    resume_url: Optional[str] = Field(None, alias="resumeUrl")
    cover_letter_url: Optional[str] = Field(None, alias="coverLetterUrl")
    cv: Optional[Dict[str, Any]] = None
    parsed_resume_text: Optional[str] = Field(None, alias="parsedResumeText")
    salary_expectation: Optional[Any] = Field(None, alias="desiredSalary")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in [self.first_name, self.last_name] if p)

    @property
    def positions(self) -> List[str]:
        prefs = self.job_preferences or {}
        return list(prefs.get("positions") or [])

    @property
    def location(self) -> Optional[str]:
        prefs = self.job_preferences or {}
        location = prefs.get("location")
        if isinstance(location, list):
            return location[0] if location else None
        return location or self.city or self.country

    def get_resume_url(self) -> Optional[str]:
        if self.resume_url:
            return self.resume_url
        if self.cv and self.cv.get("url"):
            return self.cv["url"]
        return None

    def to_message(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
