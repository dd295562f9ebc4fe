"""
Form Handler for AutoApply
@file purpose: Locate and fill application form fields on any job board page
"""

import json
import logging
import os
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from activity.base_activity import ActivityType
from constants import OUTPUT_DIR
from shared.form_handler import selectors
from shared.form_handler.answer import Answer
from shared.form_handler.field_type import FieldType
from shared.form_handler.form_utils import (
    classify_field,
    describe_element,
    format_date_for_input,
    get_element_label,
    get_profile_value,
    get_select_options,
    identify_field,
    match_option,
    process_phone_number,
    should_check_checkbox,
)

logger = logging.getLogger(__name__)


class FormHandler:
    """
    Fills multi-step application forms

    Answers come from the user profile for well-known fields (name, email,
    phone) and from the AI answer service for everything else. Every
    answer is appended to a JSONL log under OUTPUT_DIR/form_handler.
    """

    def __init__(
        self,
        page,
        user_data: Dict[str, Any],
        ai_service=None,
        file_handler=None,
        resume_service=None,
        browser_operator=None,
        job_description: str = "",
        job_details: Optional[Dict[str, Any]] = None,
        platform: str = "generic",
        activity_callback: Optional[Callable] = None,
        application_id: Optional[str] = None,
        step_delay: float = 2.0,
    ):
        self.page = page
        self.user_data = user_data or {}
        self.ai_service = ai_service
        self.file_handler = file_handler
        self.resume_service = resume_service
        self.browser_operator = browser_operator
        self.job_description = job_description or ""
        self.job_details = job_details or {}
        self.platform = platform
        self.activity_callback = activity_callback
        self.application_id = application_id
        self.step_delay = step_delay
        self.resume_uploaded = False

        today = datetime.now().strftime("%Y-%m-%d")
        form_handler_dir = os.path.join(OUTPUT_DIR, "form_handler")
        os.makedirs(form_handler_dir, exist_ok=True)
        self.log_path = os.path.join(form_handler_dir, f"{today}.log")

    def send_activity(self, message: str, activity_type: str = ActivityType.ACTION):
        """Send activity message if callback is available"""
        if self.activity_callback:
            self.activity_callback(message, activity_type)
        else:
            logger.info(f"[{activity_type.upper()}] {message}")

    # ------------------------------------------------------------------
    # Low level interactions, routed through the browser operator when set
    # ------------------------------------------------------------------

    def _click(self, locator):
        if self.browser_operator:
            self.browser_operator.click_with_op(locator)
        else:
            locator.click()

    def _fill(self, locator, value: str):
        if self.browser_operator:
            self.browser_operator.fill_with_op(locator, value)
        else:
            locator.fill(value)

    def _select(self, locator, value: str):
        if self.browser_operator:
            self.browser_operator.select_option_with_op(locator, value=value)
        else:
            locator.select_option(value=value)

    def _set_checked(self, locator, checked: bool):
        if self.browser_operator:
            self.browser_operator.set_checked_with_op(locator, checked, force=True)
        else:
            locator.set_checked(checked, force=True)

    @staticmethod
    def _is_visible(locator) -> bool:
        try:
            return locator.is_visible()
        except Exception:
            return False

    def _sleep(self, seconds: float):
        if seconds > 0:
            time.sleep(seconds)

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def get_answer(
        self,
        label_text: str,
        field_type: str,
        options: Optional[List[str]] = None,
        element_info: Optional[Dict[str, Any]] = None,
    ) -> Answer:
        options = options or []

        if field_type not in FieldType.CHOICE_TYPES:
            key = identify_field(label_text)
            if key in ("firstName", "lastName", "email", "phone"):
                value = get_profile_value(self.user_data, key)
                if value:
                    return Answer(value, f"From profile: {key}", True, field_type)

        if not self.ai_service:
            return Answer(options[0] if options else "", "", False, field_type)

        context = {
            "userData": self.user_data,
            "jobDescription": self.job_description,
            "platform": self.platform,
            "element": element_info,
        }
        value = self.ai_service.get_answer(label_text, options, context)
        if value is None:
            return Answer("", "", False, field_type)
        return Answer(str(value), "From AI answer service", True, field_type)

    def add_log(
        self, question: str, answer: Answer, options: Optional[List[str]] = None
    ):
        entry = {
            "timestamp": datetime.now().isoformat(),
            "question": question,
            "field_type": answer.field_type,
            "answer": answer.answer,
            "reference": answer.reference,
            "confident": answer.confident,
            "options": options or [],
            "platform": self.platform,
            "application_id": self.application_id,
        }
        try:
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except Exception as e:
            logger.error(f"Failed to write log: {e}")

    # ------------------------------------------------------------------
    # Field filling
    # ------------------------------------------------------------------

    def fill_field(self, locator, label_text: str, info: Optional[Dict[str, Any]] = None) -> bool:
        """
        Fill one control with an answer for its label

        Returns:
            True if a value was applied
        """
        info = info or describe_element(locator)
        field_type = classify_field(info, label_text)

        if field_type == FieldType.FILE:
            return self.handle_file_input(locator, label_text)
        if field_type == FieldType.RADIO:
            # Radios are answered per group in handle_radio_group
            return False

        options = []
        select_options = []
        if field_type == FieldType.SELECT:
            select_options = get_select_options(locator)
            options = [o["text"] for o in select_options if o.get("value")]

        if field_type in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.EMAIL,
                          FieldType.PHONE, FieldType.NUMBER, FieldType.DATE):
            if (info.get("value") or "").strip():
                logger.debug(f"Skipping prefilled field: {label_text}")
                return False

        answer = self.get_answer(label_text, field_type, options, info)
        self.add_log(label_text, answer, options)
        if not answer:
            return False

        try:
            if field_type == FieldType.SELECT:
                return self.handle_select(locator, answer.answer, label_text, select_options)
            if field_type == FieldType.CHECKBOX:
                return self.handle_checkbox(
                    locator, answer.answer, label_text, bool(info.get("required"))
                )
            if field_type == FieldType.DATE:
                return self.handle_date_input(locator, answer.answer)
            if field_type == FieldType.PHONE:
                return self.handle_phone_input(locator, answer.answer)
            if field_type == FieldType.NUMBER:
                numeric = "".join(c for c in answer.answer if c.isdigit() or c in ".-")
                if not numeric:
                    return False
                self._fill(locator, numeric)
                return True

            value = answer.answer
            max_length = info.get("maxLength")
            if max_length:
                value = value[: int(max_length)]
            self._fill(locator, value)
            return True
        except Exception as e:
            logger.error(f"Error applying value to {label_text}: {e}")
            return False

    def handle_select(
        self,
        locator,
        value: str,
        label_text: str,
        select_options: Optional[List[Dict[str, str]]] = None,
    ) -> bool:
        select_options = select_options if select_options is not None else get_select_options(locator)
        # Skip the placeholder option
        candidates = [o for o in select_options if o.get("value")]
        if not candidates:
            return False

        idx = match_option(value, [o["text"] for o in candidates])
        if idx is None:
            idx = match_option(value, [o["value"] for o in candidates])
        if idx is None:
            logger.warning(
                f"No matching option for '{value}' in {label_text}, using first option"
            )
            idx = 0

        chosen = candidates[idx]
        self._select(locator, chosen["value"])
        self.send_activity(f"Selected \"{chosen['text']}\" for: {label_text}")
        return True

    def handle_checkbox(self, locator, value: str, label_text: str, required: bool = False) -> bool:
        checked = should_check_checkbox(value, label_text, required)
        self._set_checked(locator, checked)
        return True

    def handle_date_input(self, locator, value: str) -> bool:
        formatted = format_date_for_input(value)
        if not formatted:
            logger.warning(f"Could not format date: {value}")
            return False
        info = describe_element(locator)
        if info.get("type") == "date":
            # Native date inputs only accept ISO values
            month, day, year = formatted.split("/")
            formatted = f"{year}-{month}-{day}"
        self._fill(locator, formatted)
        return True

    def handle_phone_input(self, locator, value: str) -> bool:
        phone = process_phone_number(value, self.user_data.get("phoneCountryCode"))
        self._fill(locator, phone)
        return True

    def handle_radio_group(self, group, question_text: str) -> bool:
        radios = group.locator('input[type="radio"]')
        count = radios.count()
        if count == 0:
            return False

        labels = [get_element_label(radios.nth(i)) for i in range(count)]
        for i in range(count):
            try:
                if radios.nth(i).is_checked():
                    return False
            except Exception:
                continue

        answer = self.get_answer(question_text, FieldType.RADIO, labels)
        self.add_log(question_text, answer, labels)

        idx = match_option(answer.answer, labels) if answer else None
        if idx is None:
            values = [radios.nth(i).get_attribute("value") or "" for i in range(count)]
            idx = match_option(answer.answer, values) if answer else None
        if idx is None:
            # No match: pick the first option so required groups don't block submission
            logger.warning(
                f"No matching radio option for '{answer.answer}', selecting first option"
            )
            idx = 0

        self._set_checked(radios.nth(idx), True)
        return True

    def handle_file_input(self, locator, label_text: str) -> bool:
        if not self.file_handler:
            return False

        file_type = self.file_handler.determine_file_type(label_text)
        if file_type == "resume" and self.resume_service is not None:
            from services.resume_service import should_generate_custom_resume  # noqa: E402

            if should_generate_custom_resume(self.user_data, self.job_description):
                self.send_activity("Generating custom resume tailored for this job...")
                path = self.resume_service.generate_custom_resume(
                    self.user_data, self.job_description
                )
                if path and self.file_handler.set_input_file(locator, path):
                    self.resume_uploaded = True
                    return True
                self.send_activity("Custom resume generation failed, using existing resume")

        uploaded = self.file_handler.handle_file_upload(
            locator, label_text, self.user_data, None, self.job_details
        )
        if uploaded and file_type == "resume":
            self.resume_uploaded = True
        return uploaded

    def handle_required_checkboxes(self, container):
        checkboxes = container.locator('input[type="checkbox"]')
        for i in range(checkboxes.count()):
            checkbox = checkboxes.nth(i)
            if not self._is_visible(checkbox):
                continue
            info = describe_element(checkbox)
            if info.get("required") and not info.get("checked"):
                self.send_activity("Checking required checkbox")
                self._set_checked(checkbox, True)

    def fill_form_step(self, container) -> bool:
        """
        Fill every visible field inside ``container``

        Radio groups are answered as a unit first, then the remaining
        inputs, selects and textareas, then file inputs.

        Returns:
            True if the step had visible fields
        """
        has_visible_fields = False

        groups = container.locator(selectors.RADIO_GROUPS)
        if groups.count() == 0:
            groups = container.locator(selectors.ALT_RADIO_GROUPS)
        for i in range(groups.count()):
            group = groups.nth(i)
            if not self._is_visible(group):
                continue
            legend = group.locator("legend")
            question = legend.first.inner_text().strip() if legend.count() else ""
            if not question:
                continue
            has_visible_fields = True
            try:
                self.handle_radio_group(group, question)
            except Exception as e:
                logger.error(f"Error handling radio group '{question}': {e}")

        fields = container.locator(selectors.FORM_FIELDS)
        for i in range(fields.count()):
            field = fields.nth(i)
            if not self._is_visible(field):
                continue
            has_visible_fields = True
            info = describe_element(field)
            if info.get("type") == "radio":
                continue
            label = get_element_label(field)
            if not label:
                continue
            try:
                self.fill_field(field, label, info)
            except Exception as e:
                logger.error(f"Error handling form element {label}: {e}")

        file_inputs = container.locator(selectors.FILE_INPUT)
        for i in range(file_inputs.count()):
            file_input = file_inputs.nth(i)
            label = get_element_label(file_input) or "resume"
            if "resume" in label.lower() and self.resume_uploaded:
                continue
            has_visible_fields = True
            self.handle_file_input(file_input, label)

        self.handle_required_checkboxes(container)
        return has_visible_fields

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def find_button_by_text(self, text: str):
        buttons = self.page.locator("button")
        for i in range(buttons.count()):
            button = buttons.nth(i)
            try:
                if text in button.inner_text().strip().lower() and button.is_visible():
                    return button
            except Exception:
                continue
        return None

    def find_action_button(self):
        """Visible submit/continue/next/apply/review button, or None"""
        for text in selectors.ACTION_BUTTON_TEXTS:
            button = self.find_button_by_text(text)
            if button is not None:
                return button

        for selector in (selectors.SUBMIT, selectors.CONTINUE, selectors.ACTION_BUTTONS):
            button = self.page.locator(selector).first
            if button.count() and self._is_visible(button):
                return button
        return None

    @staticmethod
    def is_final_submit_button(button_text: str) -> bool:
        text = (button_text or "").strip().lower()
        return "submit" in text or "apply" in text

    def is_success_page(self) -> bool:
        for selector in selectors.SUCCESS_SELECTORS:
            element = self.page.locator(selector).first
            if element.count() and self._is_visible(element):
                return True
        try:
            page_text = self.page.inner_text("body").lower()
        except Exception:
            return False
        return any(text in page_text for text in selectors.SUCCESS_TEXTS)

    def find_form_container(self, container_selectors: Optional[str] = None):
        for selector in (container_selectors, "form"):
            if not selector:
                continue
            container = self.page.locator(selector).first
            if container.count():
                return container
        return self.page.locator("body")

    def fill_complete_form(
        self, max_steps: int = 10, container_selectors: Optional[str] = None
    ) -> bool:
        """
        Fill and advance a multi-step application until it is submitted

        Args:
            max_steps: Upper bound on form pages
            container_selectors: Platform form container selectors

        Returns:
            True if a success page was reached
        """
        self.send_activity("Starting automated form filling...")
        for step in range(1, max_steps + 1):
            self.send_activity(f"Processing application step {step}...")
            container = self.find_form_container(container_selectors)
            self.fill_form_step(container)

            button = self.find_action_button()
            if button is None:
                if self.is_success_page():
                    self.send_activity("Application submitted successfully!", ActivityType.RESULT)
                    return True
                self._sleep(self.step_delay)
                if self.is_success_page():
                    self.send_activity("Application submitted successfully!", ActivityType.RESULT)
                    return True
                self.send_activity("No buttons found - form may be complete")
                break

            button_text = button.inner_text().strip()
            is_final = self.is_final_submit_button(button_text)
            self.send_activity(
                "Submitting final application..." if is_final else "Continuing to next step..."
            )
            self._click(button)
            self._sleep(self.step_delay)

            if is_final and self.is_success_page():
                self.send_activity("Application submitted successfully!", ActivityType.RESULT)
                return True

        self._sleep(self.step_delay)
        return self.is_success_page()
