#!/usr/bin/env python3
"""
Resume Automation Action for Apply Bot
"""

import logging
from typing import Any, Dict

from apply_bot.actions.base_action import BaseAction

logger = logging.getLogger(__name__)


class ResumeAutomationAction(BaseAction):
    """Action to resume a paused automation session"""

    @property
    def action_name(self) -> str:
        return "resume_automation"

    def execute(self) -> Dict[str, Any]:
        """Resume browser operations, then the session"""
        try:
            if self.bot.status != "paused" or self.bot.automation_session is None:
                return {
                    "success": False,
                    "message": "Bot is not paused",
                    "status": self.bot.status,
                }

            # Browser first: the bot thread may be blocked inside a paused operation
            if self.bot.browser_operator:
                self.bot.browser_operator.resume_operations()
                self.send_activity_message("Browser operations resumed")
            self.bot.automation_session.request_resume()

            self.bot.status = "running"
            self.send_status_update("running", "Automation resumed")
            self.logger.info(f"Apply bot {self.bot.bot_id} resumed")

            return {
                "success": True,
                "message": "Automation resumed",
                "status": "running",
            }

        except Exception as e:
            self.logger.error(f"Failed to resume bot: {e}")
            return {
                "success": False,
                "message": f"Error resuming bot: {str(e)}",
                "status": "error",
            }
