#!/usr/bin/env python3
"""
Stop Automation Action for Apply Bot
"""

import logging
from typing import Any, Dict

from apply_bot.actions.base_action import BaseAction

logger = logging.getLogger(__name__)


class StopAutomationAction(BaseAction):
    """
    Action to stop an automation session

    Playwright objects belong to the bot thread, so this only queues the stop;
    the bot thread closes tabs and the browser when its loop exits.
    """

    @property
    def action_name(self) -> str:
        return "stop_automation"

    def execute(self) -> Dict[str, Any]:
        try:
            session = self.bot.automation_session
            if session is None:
                self.bot.is_running = False
                self.bot.status = "stopped"
                return {
                    "success": True,
                    "message": "Bot was not running",
                    "status": "stopped",
                }

            session.request_stop()
            # A paused browser would keep the bot thread from reaching the stop
            if self.bot.browser_operator and self.bot.browser_operator.is_operations_paused():
                self.bot.browser_operator.resume_operations()

            self.bot.is_running = False
            self.bot.status = "stopped"
            self.send_status_update("stopped", "Automation stopped")
            self.logger.info(f"Apply bot {self.bot.bot_id} stop requested")

            return {
                "success": True,
                "message": "Automation stopped",
                "status": "stopped",
            }

        except Exception as e:
            self.logger.error(f"Failed to stop bot: {e}")
            return {
                "success": False,
                "message": f"Error stopping bot: {str(e)}",
                "status": "error",
            }
