#!/usr/bin/env python3
"""
Pause Automation Action for Apply Bot
"""

import logging
from typing import Any, Dict

from apply_bot.actions.base_action import BaseAction

logger = logging.getLogger(__name__)


class PauseAutomationAction(BaseAction):
    """Action to pause a running automation session"""

    @property
    def action_name(self) -> str:
        return "pause_automation"

    def execute(self) -> Dict[str, Any]:
        """Pause the session and browser operations"""
        try:
            if not self.bot.is_running or self.bot.automation_session is None:
                return {
                    "success": False,
                    "message": "Bot is not running",
                    "status": "not_running",
                }
            if self.bot.status == "paused":
                return {
                    "success": False,
                    "message": "Bot is already paused",
                    "status": "paused",
                }

            self.bot.automation_session.request_pause()
            if self.bot.browser_operator:
                self.bot.browser_operator.pause_operations()
                self.send_activity_message("Browser operations paused")

            self.bot.status = "paused"
            self.send_status_update("paused", "Automation paused")
            self.logger.info(f"Apply bot {self.bot.bot_id} paused")

            return {
                "success": True,
                "message": "Automation paused",
                "status": "paused",
            }

        except Exception as e:
            self.logger.error(f"Failed to pause bot: {e}")
            return {
                "success": False,
                "message": f"Error pausing bot: {str(e)}",
                "status": "error",
            }
