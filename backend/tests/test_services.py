"""
Tests for the HTTP service clients: user plans, applied-job tracking and
AI answers, plus resume and cover letter documents
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest
import requests

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.ai_service import AIService
from services.application_tracker_service import ApplicationTrackerService
from services.file_handler_service import COVER_LETTER, RESUME, FileHandlerService
from services.resume_service import ResumeService, get_resume_urls, should_generate_custom_resume
from services.user_service import USER_DETAIL_FIELDS, UserService


def make_response(status_code=200, payload=None, text="", content=b""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    response.content = content
    return response


@pytest.fixture
def user_service():
    return UserService("user_123", api_host="https://api.test/")


class TestUserService:
    """Tests for UserService"""

    def test_api_host_trailing_slash_is_stripped(self, user_service):
        """Should strip the trailing slash from the API host"""
        assert user_service.api_host == "https://api.test"

    def test_get_user_details_keeps_form_fields(self, user_service):
        """Should keep only the form-filling fields"""
        payload = {"firstName": "Ada", "email": "ada@example.com", "passwordHash": "x"}
        with patch.object(user_service.session, "get", return_value=make_response(200, payload)) as mock_get:
            details = user_service.get_user_details()

        assert mock_get.call_args[0][0] == "https://api.test/api/user/user_123"
        assert details["firstName"] == "Ada"
        assert "passwordHash" not in details
        assert set(details) == set(USER_DETAIL_FIELDS)

    def test_get_user_details_failure(self, user_service):
        """Should return None when the user cannot be fetched"""
        with patch.object(user_service.session, "get", return_value=make_response(404)):
            assert user_service.get_user_details() is None

    @pytest.mark.parametrize(
        "role_payload, expected",
        [
            ({"userRole": "free", "applicationsUsed": 2}, True),
            ({"userRole": "free", "applicationsUsed": 5}, False),
            ({"userRole": "credit", "credits": 0}, False),
            ({"userRole": "credit", "credits": 3}, True),
            ({"userRole": "unlimited", "applicationsUsed": 9999}, True),
            ({"userRole": "enterprise-trial"}, False),
            ({"userRole": None}, False),
        ],
    )
    def test_can_apply_more(self, user_service, role_payload, expected):
        """Should apply the plan rules"""
        with patch.object(user_service.session, "get", return_value=make_response(200, role_payload)):
            assert user_service.can_apply_more() is expected

    def test_expired_subscription_blocks(self, user_service):
        """Should block users whose subscription has expired"""
        payload = {
            "userRole": "pro",
            "applicationsUsed": 0,
            "subscription": {"currentPeriodEnd": "2001-01-01T00:00:00Z"},
        }
        with patch.object(user_service.session, "get", return_value=make_response(200, payload)):
            assert user_service.can_apply_more() is False

    def test_role_request_error(self, user_service):
        """Should return None when the role request fails"""
        with patch.object(
            user_service.session, "get", side_effect=requests.exceptions.ConnectionError("down")
        ):
            assert user_service.check_user_role() is None
            assert user_service.can_apply_more() is False

    def test_application_limit_for_credit_users(self, user_service):
        """Should use credits as the limit for credit users"""
        with patch.object(
            user_service.session, "get", return_value=make_response(200, {"userRole": "credit", "credits": 4})
        ):
            state = user_service.check_user_role()
        assert state["applicationLimit"] == 4

    def test_update_application_count_spends_a_credit(self, user_service):
        """Should spend a credit and count the application"""
        user_service.user_state = {"userRole": "credit", "credits": 2, "applicationsUsed": 1}
        with patch.object(user_service.session, "post", return_value=make_response(201)):
            assert user_service.update_application_count() is True

        assert user_service.user_state["credits"] == 1
        assert user_service.user_state["applicationsUsed"] == 2

    def test_remaining_applications(self, user_service):
        """Should subtract used applications from the plan limit"""
        with patch.object(
            user_service.session, "get", return_value=make_response(200, {"userRole": "starter", "applicationsUsed": 10})
        ):
            assert user_service.get_remaining_applications() == 40

    def test_update_user_preferences_refreshes_cache(self, user_service):
        """Should save preferences and update the cached user"""
        user_service.user_details_cache = {"firstName": "Ada"}
        preferences = {"positions": ["Backend Engineer"], "remoteOnly": True}

        with patch.object(user_service.session, "put", return_value=make_response(200)) as mock_put:
            assert user_service.update_user_preferences(preferences) is True

        assert mock_put.call_args[0][0] == "https://api.test/api/user/user_123/preferences"
        assert user_service.user_details_cache["jobPreferences"] == preferences

    def test_update_user_preferences_failure(self, user_service):
        """Should return False when the update fails"""
        with patch.object(user_service.session, "put", return_value=make_response(500)):
            assert user_service.update_user_preferences({}) is False


class TestApplicationTrackerService:
    """Tests for ApplicationTrackerService"""

    def test_check_if_already_applied(self):
        """Should ask the API whether the job was applied to"""
        tracker = ApplicationTrackerService("user_123", api_host="https://api.test")
        with patch.object(tracker.session, "get", return_value=make_response(200, {"applied": True})) as mock_get:
            assert tracker.check_if_already_applied("abc") is True
        assert mock_get.call_args[1]["params"] == {"userId": "user_123", "jobId": "abc"}

    def test_unknown_means_not_applied(self):
        """Should treat request failures as not applied"""
        tracker = ApplicationTrackerService("user_123", api_host="https://api.test")
        with patch.object(tracker.session, "get", side_effect=requests.exceptions.Timeout()):
            assert tracker.check_if_already_applied("abc") is False

    def test_save_applied_job_payload(self):
        """Should fill in defaults when saving a job"""
        tracker = ApplicationTrackerService("user_123", api_host="https://api.test")
        with patch.object(tracker.session, "post", return_value=make_response(201)) as mock_post:
            saved = tracker.save_applied_job(
                {"jobId": "abc", "title": "Engineer", "company": "Acme", "platform": "lever"}
            )

        assert saved is True
        payload = mock_post.call_args[1]["json"]
        assert payload["userId"] == "user_123"
        assert payload["salary"] == "Not specified"
        assert isinstance(payload["appliedAt"], int)

    def test_application_stats(self):
        """Should return stats, or None on request errors"""
        tracker = ApplicationTrackerService("user_123", api_host="https://api.test")
        stats = {"total": 12, "today": 3}
        with patch.object(tracker.session, "get", return_value=make_response(200, stats)):
            assert tracker.get_application_stats() == stats

        with patch.object(tracker.session, "get", side_effect=requests.exceptions.ConnectionError()):
            assert tracker.get_application_stats() is None


class TestAIService:
    """Tests for AIService"""

    @pytest.fixture
    def ai_service(self):
        return AIService(
            api_host="https://api.test",
            platform="wellfound",
            question_fallbacks={"sponsorship": "No"},
        )

    def test_answers_are_cached(self, ai_service):
        """Should reuse cached answers for the same question"""
        with patch.object(
            ai_service.session, "post", return_value=make_response(200, {"answer": "Yes"})
        ) as mock_post:
            first = ai_service.get_answer("Are you willing to relocate?", ["Yes", "No"])
            second = ai_service.get_answer("  are you willing to relocate?", ["No", "Yes"])

        assert first == second == "Yes"
        mock_post.assert_called_once()
        payload = mock_post.call_args[1]["json"]
        assert payload["platform"] == "wellfound"
        assert "select from these options: Yes, No" in payload["question"]

    def test_salary_answers_are_numeric(self, ai_service):
        """Should turn salary answers into numbers"""
        with patch.object(
            ai_service.session, "post", return_value=make_response(200, {"answer": "$85,000 per year"})
        ):
            answer = ai_service.get_answer("Desired compensation", [], {"fieldType": "salary"})
        assert answer == "85000"

    def test_question_fallback_on_failure(self, ai_service):
        """Should fall back to a question-based answer"""
        with patch.object(ai_service.session, "post", return_value=make_response(500)):
            answer = ai_service.get_answer("Do you require visa sponsorship?", ["Yes", "No"])
        assert answer == "No"

    def test_type_fallback_on_request_error(self, ai_service):
        """Should fall back by field type when the request fails"""
        with patch.object(
            ai_service.session, "post", side_effect=requests.exceptions.ConnectionError("down")
        ):
            assert ai_service.get_answer("Expected salary", [], {"fieldType": "salary"}) == "80000"
            assert ai_service.get_answer("Pick one", ["Blue", "Red"]) == "Blue"
            assert ai_service.get_answer("Anything else?") == "Yes"

    def test_failures_are_not_cached(self, ai_service):
        """Should not cache fallback answers"""
        with patch.object(ai_service.session, "post", return_value=make_response(500)):
            ai_service.get_answer("Why us?")
        assert ai_service.answer_cache == {}

    def test_analyze_field_from_element(self, ai_service):
        """Should classify a field from its element info"""
        analysis = ai_service.analyze_field(
            {"tag": "textarea", "required": True, "maxLength": "500"}, "Tell us about yourself"
        )
        assert analysis["type"] == "textarea"
        assert analysis["required"] is True
        assert analysis["validation"]["maxLength"] == 500

    def test_format_helpers(self):
        """Should format phone numbers, numbers and emails"""
        assert AIService.format_phone_number("+1 (555) 123-4567") == "15551234567"
        assert AIService.format_phone_number("123") == "123"
        assert AIService.extract_numeric_value("about 4.0 years") == "4"
        assert AIService.validate_email("ada@example.com")
        assert not AIService.validate_email("ada@")


class TestFileHandlerService:
    """Tests for FileHandlerService"""

    @pytest.fixture
    def file_handler(self, tmp_path):
        return FileHandlerService(api_host="https://api.test/", upload_dir=str(tmp_path))

    @pytest.fixture
    def user(self):
        return {
            "id": "user_123",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "headline": "Data Engineer",
            "resumeUrl": "https://cdn.test/files/Ada%20Resume.pdf",
        }

    @pytest.mark.parametrize(
        "label, expected",
        [("Resume/CV", RESUME), ("Cover Letter (optional)", COVER_LETTER), ("", RESUME), (None, RESUME)],
    )
    def test_determine_file_type(self, label, expected):
        """Should pick cover letters by label and default to the resume"""
        assert FileHandlerService.determine_file_type(label) == expected

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://cdn.test/files/Ada%20Resume.pdf", "Ada Resume.pdf"),
            ("https://cdn.test/", "document.pdf"),
            ("", "document.pdf"),
            (None, "document.pdf"),
        ],
    )
    def test_extract_file_name_from_url(self, url, expected):
        """Should decode the file name and default to document.pdf"""
        assert FileHandlerService.extract_file_name_from_url(url) == expected

    def test_resume_url_from_cv(self):
        """Should read the resume URL from the cv object"""
        details = {"cv": {"url": "https://cdn.test/cv.pdf"}}
        assert FileHandlerService.get_file_url(details, RESUME) == "https://cdn.test/cv.pdf"
        assert FileHandlerService.get_file_url(details, COVER_LETTER) is None

    def test_stored_resume_is_downloaded_and_set(self, file_handler, user, tmp_path):
        """Should download the stored resume and set it on the input"""
        file_input = Mock()
        with patch.object(
            file_handler.session, "get", return_value=make_response(200, content=b"%PDF-1.4")
        ) as mock_get:
            assert file_handler.handle_file_upload(file_input, "Resume", user) is True

        mock_get.assert_called_once()
        path = file_input.set_input_files.call_args[0][0]
        assert path == os.path.join(str(tmp_path), "Ada Resume.pdf")
        with open(path, "rb") as f:
            assert f.read() == b"%PDF-1.4"

    def test_tailored_resume_falls_back_to_stored(self, file_handler, user):
        """Should upload the stored resume when tailoring fails"""
        file_input = Mock()
        with patch.object(file_handler.session, "post", return_value=make_response(500)), patch.object(
            file_handler.session, "get", return_value=make_response(200, content=b"%PDF")
        ) as mock_get:
            assert file_handler.handle_file_upload(file_input, "Resume", user, "Build pipelines") is True

        assert mock_get.call_args[0][0] == user["resumeUrl"]

    def test_failed_download(self, file_handler, user):
        """Should report failure when the file cannot be downloaded"""
        file_input = Mock()
        with patch.object(file_handler.session, "get", return_value=make_response(404)):
            assert file_handler.handle_file_upload(file_input, "Resume", user) is False
        file_input.set_input_files.assert_not_called()

    def test_cover_letter_rendered_from_default_template(self, file_handler, user, tmp_path):
        """Should render the bundled cover letter when the user has none stored"""
        file_input = Mock()
        job = {"title": "Data Engineer", "company": "Acme Corp"}

        assert file_handler.handle_file_upload(file_input, "Cover letter", user, None, job) is True

        path = file_input.set_input_files.call_args[0][0]
        assert path == os.path.join(str(tmp_path), "cover_letter_Acme_Corp.txt")
        with open(path, encoding="utf-8") as f:
            text = f.read()
        assert text.startswith("Dear Hiring Manager")
        assert "Data Engineer position at Acme Corp" in text
        assert text.endswith("Ada Lovelace")

    def test_user_cover_letter_template(self, file_handler, user):
        """Should render the user's own template"""
        user["coverLetterTemplate"] = "Hello {{ company }}, from {{ full_name }}"
        text = file_handler.render_cover_letter(user, {"company": "Acme"})
        assert text == "Hello Acme, from Ada Lovelace"

    def test_broken_user_template_uses_default(self, file_handler, user):
        """Should fall back to the bundled template when the user's does not parse"""
        user["coverLetterTemplate"] = "Hello {{ company"
        text = file_handler.render_cover_letter(user, {"company": "Acme"})
        assert text.startswith("Dear Hiring Manager")


class TestResumeService:
    """Tests for ResumeService"""

    @pytest.fixture
    def resume_service(self, tmp_path):
        return ResumeService(base_url="https://resume.test/", output_dir=str(tmp_path))

    @pytest.fixture
    def user(self):
        return {
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "phoneCountryCode": "+1",
            "phoneNumber": "5550100",
            "resumeUrl": ["https://cdn.test/old.pdf", "https://cdn.test/new.pdf"],
            "summary": "Data engineer",
        }

    @pytest.mark.parametrize(
        "user_data, description, expected",
        [
            ({"plan": "unlimited", "jobPreferences": {"useCustomResume": True}}, "JD", True),
            ({"userRole": "unlimited", "jobPreferences": {"useCustomResume": True}}, "JD", True),
            ({"plan": "unlimited", "jobPreferences": {"useCustomResume": True}}, "", False),
            ({"plan": "free", "jobPreferences": {"useCustomResume": True}}, "JD", False),
            ({"plan": "unlimited"}, "JD", False),
        ],
    )
    def test_should_generate_custom_resume(self, user_data, description, expected):
        """Only opted-in unlimited users with a job description get a custom resume"""
        assert should_generate_custom_resume(user_data, description) is expected

    def test_get_resume_urls(self):
        """Should accept a list, a single URL or the cv object"""
        assert get_resume_urls({"resumeUrl": ["a", "b"]}) == ["a", "b"]
        assert get_resume_urls({"resumeUrl": "a"}) == ["a"]
        assert get_resume_urls({"cv": {"url": "c"}}) == ["c"]
        assert get_resume_urls({}) == []

    def test_parse_optimize_and_render(self, resume_service, user, tmp_path):
        """Should chain the three calls and save the PDF"""
        responses = [
            make_response(200, {"text": "Ada Lovelace, data engineer"}),
            make_response(200, {"data": {"summary": "Tailored"}}),
            make_response(200, content=b"%PDF-1.4 tailored"),
        ]
        with patch.object(resume_service.session, "post", side_effect=responses) as mock_post:
            path = resume_service.generate_custom_resume(user, "Build pipelines")

        urls = [c[0][0] for c in mock_post.call_args_list]
        assert urls == [
            "https://resume.test/parse-resume",
            "https://resume.test/optimize-resume",
            "https://resume.test/generate-resume-pdf",
        ]
        assert mock_post.call_args_list[0][1]["json"] == {"file_url": "https://cdn.test/new.pdf"}
        optimize_payload = mock_post.call_args_list[1][1]["json"]
        assert optimize_payload["resume_text"] == "Ada Lovelace, data engineer"
        assert optimize_payload["user_data"]["summary"] == "Data engineer"
        pdf_payload = mock_post.call_args_list[2][1]["json"]
        assert pdf_payload["user_data"]["phone"] == "+15550100"
        assert pdf_payload["resume_data"] == {"summary": "Tailored"}

        assert path == os.path.join(str(tmp_path), "Ada_Lovelace.pdf")
        with open(path, "rb") as f:
            assert f.read() == b"%PDF-1.4 tailored"

    def test_parse_failure_stops_the_chain(self, resume_service, user):
        """Should stop after a failed parse"""
        with patch.object(resume_service.session, "post", return_value=make_response(500)) as mock_post:
            assert resume_service.generate_custom_resume(user, "Build pipelines") is None
        mock_post.assert_called_once()

    def test_empty_pdf(self, resume_service, user):
        """Should treat an empty PDF as a failure"""
        responses = [
            make_response(200, {"text": "resume"}),
            make_response(200, {"data": {"summary": "x"}}),
            make_response(200, content=b""),
        ]
        with patch.object(resume_service.session, "post", side_effect=responses):
            assert resume_service.generate_custom_resume(user, "Build pipelines") is None

    def test_request_error(self, resume_service, user):
        """Should return None when the service is unreachable"""
        with patch.object(
            resume_service.session, "post", side_effect=requests.exceptions.ConnectionError("down")
        ):
            assert resume_service.generate_custom_resume(user, "Build pipelines") is None

    def test_no_resume_on_file(self, resume_service):
        """Should not call the service without a resume URL"""
        with patch.object(resume_service.session, "post") as mock_post:
            assert resume_service.generate_custom_resume({"name": "Ada"}, "Build pipelines") is None
        mock_post.assert_not_called()
