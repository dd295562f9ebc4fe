#!/usr/bin/env python3
"""
Actions for Apply Bot
"""

from apply_bot.actions.pause_automation_action import PauseAutomationAction
from apply_bot.actions.resume_automation_action import ResumeAutomationAction
from apply_bot.actions.start_automation_action import StartAutomationAction
from apply_bot.actions.stop_automation_action import StopAutomationAction

__all__ = [
    "StartAutomationAction",
    "StopAutomationAction",
    "PauseAutomationAction",
    "ResumeAutomationAction",
]
