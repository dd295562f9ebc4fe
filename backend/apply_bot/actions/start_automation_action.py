#!/usr/bin/env python3
"""
Start Automation Action for Apply Bot
"""

import logging
from typing import Any, Dict

from apply_bot.actions.base_action import BaseAction
from exceptions import (
    ApplicationLimitException,
    InvalidStartRequestException,
    PlatformNotSupportedException,
)
from services.user_service import UserService
from shared.models import AutomationStatus

logger = logging.getLogger(__name__)


class StartAutomationAction(BaseAction):
    """Action to start an automation session and run it until it ends"""

    @property
    def action_name(self) -> str:
        return "start_automation"

    def check_application_limit(self, user_service: UserService):
        """Raise ApplicationLimitException when the user's plan is used up"""
        if user_service.can_apply_more():
            return
        state = user_service.user_state or {}
        plan = state.get("userRole") or "unknown"
        used = int(state.get("applicationsUsed", 0) or 0)
        limit = user_service.plan_limits.get(plan, 0)
        raise ApplicationLimitException(
            f"Application limit reached for plan {plan}", plan, limit, used
        )

    def execute(self) -> Dict[str, Any]:
        """
        Start the automation and block until the session finishes
        Returns status dict with success/error info
        """
        try:
            if self.bot.is_running:
                return {
                    "success": False,
                    "message": "Bot is already running",
                    "status": "already_running",
                }
            self.bot.is_running = True
            self.bot.status = "starting"

            request = self.bot.start_request
            user_service = UserService(self.bot.user_id, api_host=request.get("apiHost"))
            self.check_application_limit(user_service)

            session = self.bot.orchestrator.create_session(
                request,
                activity_callback=self.bot.websocket_callback,
                user_service=user_service,
            )
            self.bot.automation_session = session
            self.bot.browser_operator = session.browser_operator
            self.bot.status = "running"
            self.send_activity_message(
                f"Applying to up to {session.jobs_to_apply} jobs on {session.platform}"
            )

            final_status = self.bot.orchestrator.run_session(session)
            self.logger.info(f"Apply bot {self.bot.bot_id} finished: {final_status.value}")

            if final_status == AutomationStatus.COMPLETED:
                self.bot.status = "completed"
                return {
                    "success": True,
                    "message": session.stop_reason or "Automation completed",
                    "status": "completed",
                    "results": session.get_results(),
                }
            if final_status == AutomationStatus.STOPPED:
                self.bot.status = "stopped"
                return {
                    "success": True,
                    "message": session.stop_reason or "Automation stopped",
                    "status": "stopped",
                    "results": session.get_results(),
                }

            self.bot.status = "error"
            return {
                "success": False,
                "message": session.stop_reason or f"Automation {final_status.value}",
                "status": "error",
            }

        except ApplicationLimitException as e:
            self.logger.warning(f"Apply bot {self.bot.bot_id}: {e.message}")
            self.bot.status = "error"
            self.send_status_update("error", e.message)
            return {"success": False, "status": "limit_reached", **e.to_dict()}

        except (InvalidStartRequestException, PlatformNotSupportedException) as e:
            self.bot.status = "error"
            return {"success": False, "status": "invalid_request", **e.to_dict()}

        except Exception as e:
            self.logger.error(f"Failed to start automation: {e}", exc_info=True)
            self.bot.status = "error"
            return {
                "success": False,
                "message": f"Failed to start automation: {str(e)}",
                "status": "error",
            }

        finally:
            self.bot.is_running = False
