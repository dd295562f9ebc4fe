#!/usr/bin/env python3
"""
Apply Bot for AutoApply
"""

from apply_bot.apply_bot import ApplyBot
from apply_bot.apply_bot_controller import ApplyBotController, apply_bot_controller

__all__ = ["ApplyBot", "ApplyBotController", "apply_bot_controller"]
