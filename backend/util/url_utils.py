"""
URL helpers shared by platform automations and the background handler
"""

import logging
import re
import time
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

logger = logging.getLogger(__name__)

_LEVER_JOB_ID = re.compile(r"/([a-f0-9-]{36})(?:/apply)?/?$")
_LINKEDIN_JOB_ID = re.compile(r"/jobs/view/(\d+)|currentJobId=(\d+)")
_INDEED_JOB_ID = re.compile(r"[?&]jk=([a-zA-Z0-9]+)")
_GLASSDOOR_JOB_ID = re.compile(r"jobListingId=(\d+)|_JV_.*?(\d{6,})")
_WELLFOUND_JOB_ID = re.compile(r"/jobs/(\d+)")

# Query parameters that identify a job (Indeed, Glassdoor, LinkedIn, ZipRecruiter)
JOB_QUERY_KEYS = ("jk", "jobListingId", "jl", "currentJobId", "jid")

PLATFORM_PATTERNS = {
    "lever": re.compile(r"^https://jobs\.(eu\.)?lever\.co/[^/]+/[^/]+"),
    "recruitee": re.compile(r"recruitee\.com/(o|career)/"),
    "glassdoor": re.compile(r"^https://(www\.)?glassdoor\.com/(job|Job|partner|apply).*$"),
    "workday": re.compile(r"^https://[^/]+\.myworkdayjobs\.com/.+/job/.+"),
    "indeed": re.compile(r"^https://([a-z]{2,3}\.)?(www\.)?indeed\.com/"),
    "wellfound": re.compile(r"^https://(www\.)?wellfound\.com/jobs/\d+"),
}

SEARCH_LINK_PATTERNS = {
    "lever": r"^https://jobs\.(eu\.)?lever\.co/([^/]*)/([^/]*)/?(.*)?$",
    "recruitee": r"^https://.*\.recruitee\.com/(o|career)/([^/]+)/?.*$",
    "glassdoor": r"^https://(www\.)?glassdoor\.com/(job|Job|partner|apply).*$",
    "workday": r"^https://[^/]+\.myworkdayjobs\.com/.+/job/.+$",
}

PLATFORM_DOMAINS = {
    "lever": ["https://jobs.lever.co"],
    "recruitee": ["recruitee.com"],
    "glassdoor": ["glassdoor.com"],
    "workday": ["myworkdayjobs.com"],
    "indeed": ["indeed.com"],
    "ziprecruiter": ["ziprecruiter.com"],
    "linkedin": ["linkedin.com"],
    "wellfound": ["wellfound.com"],
}


def _fallback_job_id() -> str:
    return f"job-{int(time.time() * 1000)}"


def normalize_url(url: Optional[str]) -> str:
    """
    Normalize a job URL for comparison

    Adds https:// when missing, drops a trailing /apply, keeps only
    origin + path, lowercases and strips trailing slashes.
    """
    if not url:
        return ""
    try:
        url = url.strip()
        if not url.startswith("http"):
            url = "https://" + url
        parsed = urlparse(url)
        if not parsed.netloc:
            return url.lower()
        path = re.sub(r"/apply/?$", "", parsed.path)
        normalized = f"{parsed.scheme}://{parsed.netloc}{path}"
        return normalized.lower().rstrip("/")
    except ValueError:
        return url.lower().strip()


def job_url_key(url: Optional[str]) -> str:
    """
    Dedup key for a job URL

    normalize_url() plus the query parameter that names the job on boards
    whose job pages all share one path (viewjob?jk=..., ?jobListingId=...).
    """
    normalized = normalize_url(url)
    if not normalized:
        return ""
    query = parse_qs(urlparse(url if url.startswith("http") else f"https://{url}").query)
    for key in JOB_QUERY_KEYS:
        values = query.get(key)
        if values and values[0]:
            return f"{normalized}?{key.lower()}={values[0].lower()}"
    return normalized


def urls_match(first: Optional[str], second: Optional[str]) -> bool:
    """Same job: equal keys, or one path nested in the other when neither has a job query"""
    a, b = job_url_key(first), job_url_key(second)
    if not a or not b:
        return False
    if a == b:
        return True
    if "?" in a or "?" in b:
        return False
    return a in b or b in a


def extract_job_id(url: str, platform: str) -> str:
    """Best-effort job id from a URL, falling back to job-<ms timestamp>"""
    if not url:
        return _fallback_job_id()

    if platform == "lever":
        match = _LEVER_JOB_ID.search(url)
        return match.group(1) if match else _fallback_job_id()

    if platform == "recruitee":
        last = url.rstrip("/").split("/")[-1]
        return last or _fallback_job_id()

    patterns = {
        "linkedin": _LINKEDIN_JOB_ID,
        "indeed": _INDEED_JOB_ID,
        "glassdoor": _GLASSDOOR_JOB_ID,
        "wellfound": _WELLFOUND_JOB_ID,
    }
    pattern = patterns.get(platform)
    if pattern:
        match = pattern.search(url)
        if match:
            return next(g for g in match.groups() if g)

    if platform == "workday":
        # .../job/<location>/<title>_<REQ-ID>
        match = re.search(r"_([A-Za-z0-9-]+)/?$", url)
        if match:
            return match.group(1)

    return _fallback_job_id()


def extract_company_from_url(url: str, platform: str) -> Optional[str]:
    """Company name encoded in the URL, capitalized, or None"""
    if not url:
        return None

    match = None
    if platform == "lever":
        match = re.search(r"//jobs\.(?:eu\.)?lever\.co/([^/]+)", url)
    elif platform == "recruitee":
        match = re.search(r"//(.+?)\.recruitee\.com/", url)
    elif platform == "workday":
        match = re.search(r"//([^.]+)\.[^.]+\.myworkdayjobs\.com/", url)

    if not match:
        return None
    name = match.group(1).replace("-", " ")
    return name[:1].upper() + name[1:]


def matches_platform_pattern(url: str, platform: str) -> bool:
    pattern = PLATFORM_PATTERNS.get(platform)
    return bool(pattern and url and pattern.search(url))


def get_search_link_pattern(platform: str) -> Optional[str]:
    return SEARCH_LINK_PATTERNS.get(platform)


def get_platform_domains(platform: str) -> List[str]:
    return list(PLATFORM_DOMAINS.get(platform, []))


def is_valid_job_url(url: str) -> bool:
    """http(s) URL with a host"""
    if not url or not isinstance(url, str):
        return False
    parsed = urlparse(url if url.startswith("http") else f"https://{url}")
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_application_page(url: str) -> bool:
    if not url:
        return False
    lowered = url.lower()
    return "/apply" in lowered or "/application" in lowered
