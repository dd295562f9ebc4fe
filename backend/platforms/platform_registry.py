"""
Platform Registry for AutoApply
@file purpose: Map platform names to their automation classes
"""

import logging
from typing import Dict, List, Optional, Type

from platforms.base_platform_automation import BasePlatformAutomation
from platforms.glassdoor import GlassdoorPlatform
from platforms.indeed import IndeedPlatform
from platforms.lever import LeverPlatform
from platforms.linkedin import LinkedInPlatform
from platforms.recruitee import RecruiteePlatform
from platforms.wellfound import WellfoundPlatform
from platforms.workday import WorkdayPlatform
from platforms.ziprecruiter import ZipRecruiterPlatform

logger = logging.getLogger(__name__)

# Registration order is the order reported to clients
_PLATFORMS: Dict[str, Type[BasePlatformAutomation]] = {
    "indeed": IndeedPlatform,
    "glassdoor": GlassdoorPlatform,
    "lever": LeverPlatform,
    "workday": WorkdayPlatform,
    "ziprecruiter": ZipRecruiterPlatform,
    "linkedin": LinkedInPlatform,
    "wellfound": WellfoundPlatform,
    "recruitee": RecruiteePlatform,
}


def get_platform(name: Optional[str]) -> Optional[Type[BasePlatformAutomation]]:
    """Automation class for ``name`` (case-insensitive), or None"""
    if not name:
        return None
    platform_class = _PLATFORMS.get(name.strip().lower())
    if platform_class is None:
        logger.warning(f"Unknown platform requested: {name}")
    return platform_class


def get_supported_platforms() -> List[str]:
    return list(_PLATFORMS.keys())


def is_platform_supported(name: Optional[str]) -> bool:
    return bool(name) and name.strip().lower() in _PLATFORMS
