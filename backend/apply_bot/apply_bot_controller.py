#!/usr/bin/env python3
"""
Apply Bot Controller for AutoApply
@file purpose: Manage Apply bot instances and activity polling
"""

import logging
import queue
import threading
import uuid
from threading import Lock
from typing import Any, Dict, List, Optional

from apply_bot.apply_bot import ApplyBot
from background.automation_orchestrator import AutomationOrchestrator
from exceptions import InvalidStartRequestException, PlatformNotSupportedException

logger = logging.getLogger(__name__)

MAX_MESSAGES_PER_SESSION = 10000
STOP_TIMEOUT = 10
THREAD_JOIN_TIMEOUT = 5


class ApplyBotController:
    """Controller to manage Apply bot instances and activity polling"""

    def __init__(self, orchestrator: Optional[AutomationOrchestrator] = None):
        self.orchestrator = orchestrator or AutomationOrchestrator()
        self.bots: Dict[str, ApplyBot] = {}
        self.polling_sessions: Dict[str, str] = {}
        self.activity_messages: Dict[str, List[Dict]] = {}
        self.stopping_sessions: set = set()
        self._message_lock = Lock()

    def register_polling_session(self, session_id: str):
        self.polling_sessions[session_id] = session_id
        logger.info(f"Registered polling for session: {session_id}")

    def unregister_polling_session(self, session_id: str):
        if session_id in self.polling_sessions:
            del self.polling_sessions[session_id]
            logger.info(f"Unregistered polling for session: {session_id}")

    def has_polling_session(self, session_id: str) -> bool:
        return session_id in self.polling_sessions

    def cleanup_session_data(self, session_id: str):
        """Clean up session data to prevent memory leaks"""
        with self._message_lock:
            self.activity_messages.pop(session_id, None)
        self.polling_sessions.pop(session_id, None)
        logger.debug(f"Cleaned up polling data for session {session_id}")

    def get_active_bot(self, session_id: str) -> Optional[ApplyBot]:
        return self.bots.get(session_id)

    def _send_activity_message(self, session_id: str, message: Dict[str, Any]):
        """Store activity message for frontend polling"""
        if not self.has_polling_session(session_id):
            logger.debug(f"No polling session for {session_id}, skipping message")
            return

        with self._message_lock:
            messages = self.activity_messages.setdefault(session_id, [])
            messages.append(message)
            if len(messages) > MAX_MESSAGES_PER_SESSION:
                self.activity_messages[session_id] = messages[-MAX_MESSAGES_PER_SESSION:]
                logger.debug(
                    f"Trimmed activity queue for session {session_id} to {MAX_MESSAGES_PER_SESSION} messages"
                )

    def drain_activity_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """Return and forget every message stored for a session"""
        with self._message_lock:
            messages = self.activity_messages.get(session_id, [])
            self.activity_messages[session_id] = []
        return messages

    def start_automation_controller(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a start request and run the automation in a background thread

        Args:
            request: start request with platform, userId, jobsToApply and
                optional preferences, userProfile, devMode and sessionId
        """
        try:
            request = self.orchestrator.validate_start_request(request)
        except (InvalidStartRequestException, PlatformNotSupportedException) as e:
            logger.warning(f"Rejected start request: {e.message}")
            return {"success": False, "status": "invalid_request", **e.to_dict()}

        session_id = request["sessionId"]
        try:
            existing = self.bots.get(session_id)
            if existing is not None:
                if existing.is_running:
                    return {
                        "success": False,
                        "message": "Bot is already running for this session",
                        "bot_id": existing.bot_id,
                        "session_id": session_id,
                    }
                del self.bots[session_id]

            self.register_polling_session(session_id)

            def activity_callback(message):
                self._send_activity_message(session_id, message)

            bot_id = f"apply_bot_{request['platform']}_{uuid.uuid4().hex[:8]}"
            bot = ApplyBot(
                bot_id,
                request["userId"],
                request,
                self.orchestrator,
                websocket_callback=activity_callback,
            )
            self.bots[session_id] = bot
            logger.info(
                f"Created Apply bot for session {session_id}: {bot_id}. "
                f"Active bots: {list(self.bots.keys())}"
            )

            def run_bot_in_thread():
                try:
                    result = bot.start_automation()
                    logger.info(f"Bot thread completed for session {session_id}: {result}")
                    if not result.get("success", False):
                        self.bots.pop(session_id, None)
                        self._send_activity_message(
                            session_id,
                            {
                                "type": "error",
                                "message": f"Bot failed: {result.get('message', 'Unknown error')}",
                            },
                        )
                except Exception as e:
                    logger.error(f"Bot thread error for session {session_id}: {e}")
                    self.bots.pop(session_id, None)
                    self._send_activity_message(
                        session_id,
                        {"type": "error", "message": f"Bot thread error: {str(e)}"},
                    )

            bot_thread = threading.Thread(target=run_bot_in_thread, daemon=True)
            bot.bot_thread = bot_thread
            bot_thread.start()

            return {
                "success": True,
                "message": "Bot started successfully in background",
                "status": "started",
                "bot_id": bot_id,
                "session_id": session_id,
            }

        except Exception as e:
            logger.error(f"Failed to start automation for session {session_id}: {e}")
            self.bots.pop(session_id, None)
            self._send_activity_message(
                session_id,
                {"type": "error", "message": f"Failed to start automation: {str(e)}"},
            )
            return {
                "success": False,
                "message": f"Failed to start automation: {str(e)}",
                "session_id": session_id,
            }

    def stop_automation_controller(self, session_id: str) -> Dict[str, Any]:
        """Stop the automation of a session"""
        try:
            if session_id in self.stopping_sessions:
                return {
                    "success": True,
                    "message": "Session is already being stopped",
                    "session_id": session_id,
                }

            if session_id not in self.bots:
                logger.warning(
                    f"Stop requested for session {session_id} but bot not found. "
                    f"Active bots: {list(self.bots.keys())}"
                )
                return {
                    "success": False,
                    "message": "No active bot found for this session",
                    "session_id": session_id,
                }

            self.stopping_sessions.add(session_id)
            bot = self.bots[session_id]
            bot_id = bot.bot_id
            logger.info(f"Stopping bot {bot_id} for session {session_id}")

            result_queue = queue.Queue()

            def run_stop_in_thread():
                try:
                    result_queue.put(bot.stop_automation())
                except Exception as e:
                    logger.error(f"Bot stop thread error for session {session_id}: {e}")
                    result_queue.put(
                        {"success": False, "message": f"Bot stop thread error: {str(e)}"}
                    )

            stop_thread = threading.Thread(target=run_stop_in_thread, daemon=True)
            stop_thread.start()

            try:
                result = result_queue.get(timeout=STOP_TIMEOUT)
            except queue.Empty:
                result = {"success": False, "message": "Bot stop operation timed out"}

            if bot.bot_thread and bot.bot_thread.is_alive():
                logger.info(f"Waiting for bot thread to finish for session {session_id}")
                bot.bot_thread.join(timeout=THREAD_JOIN_TIMEOUT)
                if bot.bot_thread.is_alive():
                    logger.warning(f"Bot thread for session {session_id} did not finish in time")

            self.bots.pop(session_id, None)
            self.cleanup_session_data(session_id)
            self.stopping_sessions.discard(session_id)
            logger.info(f"Bot {bot_id} removed from session {session_id}")

            return {**result, "bot_id": bot_id, "session_id": session_id}

        except Exception as e:
            logger.error(f"Failed to stop automation for session {session_id}: {e}")
            self.bots.pop(session_id, None)
            self.cleanup_session_data(session_id)
            self.stopping_sessions.discard(session_id)
            return {
                "success": False,
                "message": f"Failed to stop automation: {str(e)}",
                "session_id": session_id,
            }

    def pause_automation_controller(self, session_id: str) -> Dict[str, Any]:
        try:
            bot = self.bots.get(session_id)
            if bot is None:
                return {
                    "success": False,
                    "message": "No active bot found for this session",
                    "session_id": session_id,
                }
            result = bot.pause_automation()
            return {**result, "bot_id": bot.bot_id, "session_id": session_id}

        except Exception as e:
            logger.error(f"Failed to pause automation for session {session_id}: {e}")
            return {
                "success": False,
                "message": f"Failed to pause automation: {str(e)}",
                "session_id": session_id,
            }

    def resume_automation_controller(self, session_id: str) -> Dict[str, Any]:
        try:
            bot = self.bots.get(session_id)
            if bot is None:
                return {
                    "success": False,
                    "message": "No active bot found for this session",
                    "session_id": session_id,
                }
            result = bot.resume_automation()
            return {**result, "bot_id": bot.bot_id, "session_id": session_id}

        except Exception as e:
            logger.error(f"Failed to resume automation for session {session_id}: {e}")
            return {
                "success": False,
                "message": f"Failed to resume automation: {str(e)}",
                "session_id": session_id,
            }

    def get_bot_status(self, session_id: str) -> Dict[str, Any]:
        bot = self.bots.get(session_id)
        if bot is None:
            return {
                "session_id": session_id,
                "bot_exists": False,
                "message": "No bot found for this session",
            }
        return {**bot.get_status(), "session_id": session_id, "bot_exists": True}

    def get_all_bots_status(self) -> Dict[str, Any]:
        statuses = {session_id: bot.get_status() for session_id, bot in list(self.bots.items())}
        return {"total_bots": len(statuses), "bots": statuses}

    def cleanup_session(self, session_id: str):
        """Cleanup all resources for a session"""
        try:
            if session_id in self.bots and session_id not in self.stopping_sessions:
                self.stop_automation_controller(session_id)
            self.unregister_polling_session(session_id)
            self.stopping_sessions.discard(session_id)
            logger.info(f"Cleaned up session: {session_id}")
        except Exception as e:
            logger.error(f"Failed to cleanup session {session_id}: {e}")


# Global bot controller instance
apply_bot_controller = ApplyBotController()
