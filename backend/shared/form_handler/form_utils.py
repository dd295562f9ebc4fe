"""
Form field helpers
@file purpose: Element description, label discovery and value formatting used by the form handlers
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from shared.form_handler.field_type import FieldType
from util.time_util import format_date

logger = logging.getLogger(__name__)

TRUE_VALUES = {"yes", "true", "1", "y"}
FALSE_VALUES = {"no", "false", "0", "n"}

AGREEMENT_KEYWORDS = [
    "terms",
    "privacy",
    "policy",
    "agreement",
    "consent",
    "i agree",
    "i accept",
    "i authorize",
    "acknowledge",
    "understand",
    "disclaimer",
]

# Reads the attributes of a form control in one round trip
DESCRIBE_ELEMENT_JS = """
(el) => ({
    tag: el.tagName.toLowerCase(),
    type: (el.getAttribute('type') || '').toLowerCase(),
    id: el.id || '',
    name: el.getAttribute('name') || '',
    placeholder: el.getAttribute('placeholder') || '',
    inputMode: el.getAttribute('inputmode') || '',
    ariaLabel: el.getAttribute('aria-label') || '',
    required: el.required === true || el.getAttribute('aria-required') === 'true'
        || !!el.closest('[aria-required="true"]'),
    maxLength: el.maxLength > 0 ? el.maxLength : null,
    min: el.getAttribute('min'),
    max: el.getAttribute('max'),
    checked: !!el.checked,
    value: el.value || '',
})
"""

# label[for=id] -> ancestor label -> fieldset legend (radios) -> aria-label
# -> placeholder -> sibling text (radios) -> name
ELEMENT_LABEL_JS = """
(el) => {
    const clean = (t) => (t || '').replace(/\\s+/g, ' ').trim();
    if (el.id) {
        const byFor = document.querySelector(`label[for="${CSS.escape(el.id)}"]`);
        if (byFor && clean(byFor.textContent)) return clean(byFor.textContent);
    }
    const parent = el.closest('label');
    if (parent) {
        const own = Array.from(parent.childNodes)
            .filter((n) => n.nodeType === Node.TEXT_NODE)
            .map((n) => n.textContent).join(' ');
        if (clean(own)) return clean(own);
        if (clean(parent.textContent)) return clean(parent.textContent);
    }
    if (el.type === 'radio' || el.type === 'checkbox') {
        const legend = el.closest('fieldset')?.querySelector('legend');
        if (legend && clean(legend.textContent)) return clean(legend.textContent);
    }
    if (el.getAttribute('aria-label')) return clean(el.getAttribute('aria-label'));
    if (el.placeholder) return clean(el.placeholder);
    if (el.type === 'radio') {
        const near = clean(el.nextElementSibling?.textContent)
            || clean(el.previousElementSibling?.textContent);
        if (near) return near;
    }
    return el.getAttribute('name') || '';
}
"""

SELECT_OPTIONS_JS = """
(el) => Array.from(el.options).map((o) => ({text: o.text.trim(), value: o.value}))
"""


def describe_element(locator) -> Dict[str, Any]:
    try:
        return locator.evaluate(DESCRIBE_ELEMENT_JS)
    except Exception as e:
        logger.debug(f"Could not describe element: {e}")
        return {}


def get_element_label(locator) -> str:
    try:
        return locator.evaluate(ELEMENT_LABEL_JS) or ""
    except Exception as e:
        logger.debug(f"Could not read element label: {e}")
        return ""


def get_select_options(locator) -> List[Dict[str, str]]:
    try:
        return locator.evaluate(SELECT_OPTIONS_JS) or []
    except Exception as e:
        logger.debug(f"Could not read select options: {e}")
        return []


def is_date_field(info: Dict[str, Any]) -> bool:
    placeholder = (info.get("placeholder") or "").lower()
    return (
        info.get("type") == "date"
        or "mm/dd/yyyy" in placeholder
        or "mm-dd-yyyy" in placeholder
        or "date" in (info.get("name") or "").lower()
        or "date" in (info.get("id") or "").lower()
    )


def is_phone_field(info: Dict[str, Any], label_text: str = "") -> bool:
    if info.get("type") == "tel":
        return True
    attributes = " ".join(
        (info.get(key) or "").lower() for key in ("name", "id", "placeholder", "ariaLabel")
    )
    if any(word in attributes for word in ("phone", "tel", "mobile", "cell")):
        return True
    label = (label_text or "").lower()
    return any(
        word in label
        for word in ("phone", "telephone", "mobile", "cell", "contact number")
    )


def classify_field(info: Dict[str, Any], label_text: str = "") -> str:
    """Map a described element to a FieldType"""
    tag = info.get("tag")
    input_type = info.get("type") or "text"

    if tag == "select":
        return FieldType.SELECT
    if tag == "textarea":
        return FieldType.TEXTAREA
    if input_type == "file":
        return FieldType.FILE
    if input_type == "radio":
        return FieldType.RADIO
    if input_type == "checkbox":
        return FieldType.CHECKBOX
    if input_type == "number" or info.get("inputMode") == "numeric":
        return FieldType.NUMBER
    if input_type == "email":
        return FieldType.EMAIL
    if is_date_field(info):
        return FieldType.DATE
    if is_phone_field(info, label_text):
        return FieldType.PHONE
    return FieldType.TEXT


def parse_boolean_value(value: Any) -> Optional[bool]:
    """yes/true/1/y -> True, no/false/0/n -> False, anything else -> None"""
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    return None


def should_check_checkbox(value: Any, label_text: str, required: bool = False) -> bool:
    parsed = parse_boolean_value(value)
    if parsed is not None:
        return parsed
    label = (label_text or "").lower()
    return required or any(word in label for word in AGREEMENT_KEYWORDS)


def format_date_for_input(value: Optional[str]) -> str:
    """Normalize a date answer to MM/DD/YYYY, or "" when it can't be read"""
    if not value:
        return ""
    value = str(value).strip()

    if re.match(r"^\d{2}/\d{2}/\d{4}$", value):
        return value
    iso = re.match(r"^(\d{4})-(\d{2})-(\d{2})$", value)
    if iso:
        return f"{iso.group(2)}/{iso.group(3)}/{iso.group(1)}"

    formatted = format_date(value, "MM/DD/YYYY")
    if formatted:
        return formatted

    numbers = re.findall(r"\d+", value)
    if len(numbers) >= 3:
        month, day, year = numbers[0].zfill(2), numbers[1].zfill(2), numbers[2]
        if len(year) == 2:
            current_year = datetime.now().year
            full_year = (current_year // 100) * 100 + int(year)
            if full_year > current_year + 10:
                full_year -= 100
            year = str(full_year)
        return f"{month}/{day}/{year}"
    return ""


def process_phone_number(phone_number: str, phone_country_code: Optional[str]) -> str:
    """Strip the country code from a phone number when a separate code is known"""
    if not phone_country_code or not phone_number:
        return phone_number or ""

    code = phone_country_code if phone_country_code.startswith("+") else f"+{phone_country_code}"
    if phone_number.startswith(code):
        return re.sub(r"^[\s\-()]+", "", phone_number[len(code):].strip())
    if phone_number.startswith("+"):
        match = re.match(r"^\+\d{1,4}", phone_number)
        if match:
            return re.sub(r"^[\s\-()]+", "", phone_number[match.end():].strip())
    return phone_number


def match_option(value: str, options: List[str]) -> Optional[int]:
    """
    Index of the option matching ``value``

    Exact (case-insensitive) match first, then containment either way.
    """
    normalized = str(value).strip().lower()
    if not normalized:
        return None
    lowered = [str(option).strip().lower() for option in options]
    for i, option in enumerate(lowered):
        if option == normalized:
            return i
    for i, option in enumerate(lowered):
        if option and (normalized in option or option in normalized):
            return i
    return None


# Label keywords -> profile key
FIELD_MAPPINGS = {
    "firstName": ["first name", "firstname", "fname", "given name"],
    "lastName": ["last name", "lastname", "lname", "surname", "family name"],
    "email": ["email", "e-mail", "email address"],
    "phone": ["phone", "telephone", "mobile", "cell"],
    "coverLetter": ["cover letter", "motivation", "message", "why"],
    "experience": ["experience", "years"],
}


def identify_field(label_text: str) -> Optional[str]:
    label = (label_text or "").lower().strip()
    if not label:
        return None
    for key, keywords in FIELD_MAPPINGS.items():
        if any(keyword in label for keyword in keywords):
            return key
    return None


def get_profile_value(profile: Dict[str, Any], key: Optional[str]) -> Optional[str]:
    """Direct profile value for a mapped field key"""
    if not key:
        return None
    if key == "phone":
        number = profile.get("phoneNumber") or profile.get("phone")
        return process_phone_number(number, profile.get("phoneCountryCode")) if number else None
    if key == "experience":
        value = profile.get("yearsOfExperience")
        return str(value) if value is not None else None
    value = profile.get(key)
    return str(value) if value not in (None, "") else None
