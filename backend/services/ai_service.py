import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests

from util.time_util import format_date, today_str

logger = logging.getLogger(__name__)

EMAIL_PATTERNS = [
    r"^email$",
    r"email.*address",
    r"e-?mail",
    r"contact.*email",
    r"work.*email",
    r"personal.*email",
]
PHONE_PATTERNS = [
    r"^phone$",
    r"phone.*number",
    r"telephone",
    r"mobile",
    r"cell.*phone",
    r"contact.*number",
    r"work.*phone",
    r"home.*phone",
]
LOCATION_PATTERNS = [
    r"^location$",
    r"current.*location",
    r"where.*located",
    r"city.*state",
    r"state.*city",
    r"where.*live",
    r"residence",
    r"geographic",
    r"postal.*code",
    r"zip.*code",
    r"(mailing|home|street|physical|billing|shipping|work|office).*address",
]
SALARY_PATTERNS = [
    r"salary",
    r"compensation",
    r"pay.*range",
    r"wage",
    r"rate.*hour",
    r"hourly.*rate",
    r"annual.*income",
]
DATE_PATTERNS = [
    r"date.*available",
    r"start.*date",
    r"available.*date",
    r"graduation.*date",
    r"end.*date",
    r"when.*available",
    r"notice.*period",
    r"when.*can.*start",
    r"date.*birth",
    r"birth.*date",
]
SOURCE_PATTERNS = [
    r"how.*did.*you.*hear",
    r"how.*did.*you.*find",
    r"source.*referral",
    r"referred.*by",
    r"how.*learn.*about",
    r"hear.*about.*position",
]
COVER_LETTER_PATTERNS = [
    r"cover.*letter",
    r"why.*interested",
    r"tell.*us.*about",
    r"additional.*information",
    r"why.*you.*right",
    r"motivation",
]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _matches_any(patterns: List[str], text: str) -> bool:
    return any(re.search(p, text, re.IGNORECASE) for p in patterns)


def is_email_field(text: str) -> bool:
    return _matches_any(EMAIL_PATTERNS, text)


def is_phone_field(text: str) -> bool:
    return _matches_any(PHONE_PATTERNS, text)


def is_location_field(text: str) -> bool:
    if is_email_field(text) or is_phone_field(text):
        return False
    return _matches_any(LOCATION_PATTERNS, text)


def is_salary_field(text: str) -> bool:
    return _matches_any(SALARY_PATTERNS, text)


def is_date_field(text: str) -> bool:
    return _matches_any(DATE_PATTERNS, text)


def is_source_field(text: str) -> bool:
    return _matches_any(SOURCE_PATTERNS, text)


def is_cover_letter_field(text: str) -> bool:
    return _matches_any(COVER_LETTER_PATTERNS, text)


def detect_date_format(placeholder: Optional[str], question_text: str) -> str:
    if placeholder:
        placeholder = placeholder.lower()
        if "mm/dd/yyyy" in placeholder:
            return "MM/DD/YYYY"
        if "dd/mm/yyyy" in placeholder:
            return "DD/MM/YYYY"
        if "yyyy-mm-dd" in placeholder:
            return "YYYY-MM-DD"
    question_text = (question_text or "").lower()
    if "mm/dd" in question_text:
        return "MM/DD/YYYY"
    if "dd/mm" in question_text:
        return "DD/MM/YYYY"
    return "MM/DD/YYYY"


class AIService:
    """
    Client for the AI answer endpoint (POST {api_host}/api/ai-answer)

    Answers are cached in memory by normalized question, sorted options,
    field type and platform. Failures never raise: a type-appropriate
    fallback answer is returned instead.
    """

    def __init__(
        self,
        api_host: Optional[str] = None,
        platform: str = "generic",
        question_fallbacks: Optional[Dict[str, str]] = None,
    ):
        from config import AI_REQUEST_TIMEOUT  # noqa: E402
        from constants import API_HOST  # noqa: E402

        self.api_host = (api_host or API_HOST).rstrip("/")
        self.platform = platform or "generic"
        self.timeout = AI_REQUEST_TIMEOUT
        self.answer_cache: Dict[str, Any] = {}
        # question keyword -> answer used when the answer service is unreachable
        self.question_fallbacks = dict(question_fallbacks or {})

        self.session = requests.Session()
        self.session.headers.update(
            {"Content-Type": "application/json", "User-Agent": "AutoApply-Backend/1.0"}
        )

    def build_cache_key(
        self, question: str, options: List[str], context: Dict[str, Any]
    ) -> str:
        return json.dumps(
            {
                "question": question.lower().strip(),
                "options": sorted(options or []),
                "fieldType": context.get("fieldType"),
                "platform": context.get("platform", self.platform),
            },
            sort_keys=True,
        )

    def get_answer(
        self,
        question: str,
        options: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Get an answer for a form question

        Args:
            question: Label/question text as shown on the form
            options: Choices for select/radio/checkbox questions
            context: userData, jobDescription, fieldType, fieldContext,
                element (described element), required, platform

        Returns:
            The post-processed answer, or a fallback answer on failure
        """
        options = list(options or [])
        context = dict(context or {})
        cache_key = self.build_cache_key(question, options, context)

        if cache_key in self.answer_cache:
            logger.debug(f"AI answer cache hit: {question[:60]}")
            return self.answer_cache[cache_key]

        try:
            payload = self.build_enhanced_context(question, options, context)
            field_analysis = payload.pop("fieldAnalysis")

            response = self.session.post(
                f"{self.api_host}/api/ai-answer", json=payload, timeout=self.timeout
            )

            if response.status_code != 200:
                raise Exception(f"AI service returned {response.status_code}")

            answer = response.json().get("answer")
            answer = self.post_process_answer(answer, field_analysis)

            self.answer_cache[cache_key] = answer
            return answer

        except requests.exceptions.RequestException as e:
            logger.error(f"Request error calling AI answer service: {e}")
        except Exception as e:
            logger.error(f"AI answer error for '{question[:60]}': {e}")

        lowered = question.lower()
        for keyword, answer in self.question_fallbacks.items():
            if keyword in lowered:
                return answer
        return self.get_fallback_answer(context.get("fieldType"), options)

    def build_enhanced_context(
        self, question: str, options: List[str], context: Dict[str, Any]
    ) -> Dict[str, Any]:
        field_type = context.get("fieldType")
        if field_type:
            field_analysis = {
                "type": field_type,
                "subType": context.get("fieldSubType"),
                "context": context.get("fieldContext", ""),
                "required": bool(context.get("required", False)),
                "validation": {},
                "formatting": {},
            }
        else:
            field_analysis = self.analyze_field(context.get("element"), question)

        enhanced_question = self.build_enhanced_question(question, field_analysis, options)
        job_description = context.get("jobDescription", "")

        return {
            "question": enhanced_question,
            "originalQuestion": question,
            "options": options,
            "platform": context.get("platform", self.platform),
            "userData": context.get("userData", {}),
            "description": job_description,
            "jobDescription": job_description,
            "fieldType": field_analysis["type"],
            "fieldSubType": field_analysis.get("subType"),
            "fieldContext": field_analysis.get("context", ""),
            "required": field_analysis.get("required", False),
            "fieldAnalysis": field_analysis,
        }

    def build_enhanced_question(
        self, question: str, field_analysis: Dict[str, Any], options: List[str]
    ) -> str:
        instructions = []
        field_type = field_analysis.get("type")
        max_length = field_analysis.get("validation", {}).get("maxLength")

        if field_type == "salary":
            instructions.append(
                "provide only the numeric amount without currency symbols or commas"
            )
        elif field_type == "date":
            date_format = field_analysis.get("formatting", {}).get(
                "dateFormat", "MM/DD/YYYY"
            )
            instructions.append(f"provide date in {date_format} format only")
        elif field_type == "phone":
            instructions.append(
                "provide phone number in international format if country code available"
            )
        elif field_type == "email":
            instructions.append("provide a valid email address")
        elif field_type == "location":
            instructions.append("provide city, state/country format")
        elif field_type == "source":
            instructions.append("how you found this job opportunity")
        elif field_type == "textarea":
            if field_analysis.get("subType") == "cover_letter":
                instructions.append(
                    "generate a professional cover letter tailored to this position"
                )
            if max_length:
                instructions.append(f"maximum {max_length} characters")
        elif field_type == "text" and max_length:
            instructions.append(f"maximum {max_length} characters")

        if field_analysis.get("required"):
            instructions.append("this field is required - provide a valid answer")

        if options:
            instructions.append(f"select from these options: {', '.join(options)}")

        if instructions:
            return f"{question} ({'; '.join(instructions)})"
        return question

    def analyze_field(
        self, element: Optional[Dict[str, Any]], question: str
    ) -> Dict[str, Any]:
        """
        Classify a field from its described element and question text

        ``element`` is the dict produced by the form handler's
        describe_element(): tag, type, inputMode, required, maxLength,
        min, max, placeholder.
        """
        analysis = {
            "type": "text",
            "subType": None,
            "context": "",
            "required": False,
            "validation": {},
            "formatting": {},
        }
        question_lower = (question or "").lower()
        placeholder = None

        if element:
            input_type = (element.get("type") or "").lower()
            if input_type == "number" or element.get("inputMode") == "numeric":
                analysis["type"] = "number"
            elif input_type == "tel":
                analysis["type"] = "phone"
            elif input_type == "email":
                analysis["type"] = "email"
            elif input_type == "date":
                analysis["type"] = "date"
            elif (element.get("tag") or "").lower() == "textarea":
                analysis["type"] = "textarea"

            analysis["required"] = bool(element.get("required"))
            max_length = element.get("maxLength")
            if max_length and int(max_length) > 0:
                analysis["validation"]["maxLength"] = int(max_length)
            for key in ("min", "max"):
                if element.get(key):
                    analysis["validation"][key] = element[key]
            placeholder = element.get("placeholder")

        if is_email_field(question_lower):
            analysis["type"] = "email"
            analysis["context"] = "Valid email address required"
        elif is_phone_field(question_lower):
            analysis["type"] = "phone"
            analysis["context"] = "Phone number with country code if available"
        elif is_salary_field(question_lower):
            analysis["type"] = "salary"
            analysis["subType"] = "currency"
            analysis["context"] = "Numeric salary amount required"
        elif is_date_field(question_lower):
            analysis["type"] = "date"
            date_format = detect_date_format(placeholder, question_lower)
            analysis["formatting"]["dateFormat"] = date_format
            analysis["context"] = f"Date in {date_format} format required"
        elif is_source_field(question_lower):
            analysis["type"] = "source"
            analysis["context"] = "Source of job discovery"
        elif is_cover_letter_field(question_lower):
            analysis["type"] = "textarea"
            analysis["subType"] = "cover_letter"
            analysis["context"] = "Professional cover letter required"
        elif is_location_field(question_lower):
            analysis["type"] = "location"
            analysis["context"] = "Geographic location required"

        return analysis

    def post_process_answer(self, answer: Any, field_analysis: Dict[str, Any]) -> Any:
        if answer is None or answer == "":
            return answer

        field_type = field_analysis.get("type")
        if field_type == "salary":
            return self.extract_numeric_salary(answer)
        if field_type == "number":
            return self.extract_numeric_value(answer)
        if field_type == "date":
            date_format = field_analysis.get("formatting", {}).get(
                "dateFormat", "MM/DD/YYYY"
            )
            return format_date(answer, date_format) or answer
        if field_type == "phone":
            return self.format_phone_number(answer)
        if field_type == "email":
            return answer if self.validate_email(answer) else None
        if field_type in ("text", "textarea"):
            max_length = field_analysis.get("validation", {}).get("maxLength")
            return str(answer)[:max_length] if max_length else str(answer)
        return answer

    @staticmethod
    def extract_numeric_salary(salary_text: Any) -> Optional[str]:
        cleaned = re.sub(r"[^\d.]", "", str(salary_text))
        match = re.search(r"\d+\.?\d*", cleaned)
        if match:
            number = float(match.group(0))
            if number > 0:
                return str(int(round(number)))
        return None

    @staticmethod
    def extract_numeric_value(text: Any) -> Optional[str]:
        cleaned = re.sub(r"[^\d.-]", "", str(text))
        match = re.search(r"-?\d+(\.\d+)?", cleaned)
        if not match:
            return None
        number = float(match.group(0))
        return str(int(number)) if number.is_integer() else str(number)

    @staticmethod
    def format_phone_number(phone: Any) -> Any:
        digits = re.sub(r"\D", "", str(phone))
        return digits if len(digits) >= 10 else phone

    @staticmethod
    def validate_email(email: Any) -> bool:
        return bool(email) and bool(_EMAIL_RE.match(str(email)))

    @staticmethod
    def get_fallback_answer(field_type: Optional[str], options: List[str]) -> str:
        fallbacks = {
            "salary": "80000",
            "phone": "555-0123",
            "email": "user@example.com",
            "location": "New York, NY",
            "source": "LinkedIn",
        }
        if field_type == "date":
            return today_str()
        if field_type in fallbacks:
            return fallbacks[field_type]
        return options[0] if options else "Yes"

    def generate_cover_letter(
        self, job_details: Dict[str, Any], user_profile: Dict[str, Any]
    ) -> str:
        context = {
            "fieldType": "textarea",
            "fieldSubType": "cover_letter",
            "userData": user_profile,
            "jobDescription": job_details.get("description")
            or json.dumps(job_details, default=str),
            "platform": self.platform,
        }
        return self.get_answer("Cover letter", [], context)

    def clear_cache(self):
        self.answer_cache.clear()
