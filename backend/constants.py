#!/usr/bin/env python3
"""
Constants for AutoApply Backend
@file purpose: Define constants and paths for the backend
"""

import os
import sys

from local_config import API_HOST, RESUME_SERVICE_URL  # noqa: F401

# Platform detection
IS_MAC = sys.platform == "darwin"
IS_WINDOWS = sys.platform == "win32"

# Base directory for application data
if IS_MAC:
    BASE_DIR = os.path.expanduser("~/Library/Application Support/AutoApply")
elif IS_WINDOWS:
    BASE_DIR = os.path.join(os.path.expanduser("~"), "AppData", "Local", "autoapply")
else:
    BASE_DIR = os.path.join(os.path.expanduser("~"), ".autoapply")

# Create base directory if it doesn't exist
os.makedirs(BASE_DIR, exist_ok=True)

# Application directories
OUTPUT_DIR = os.path.join(BASE_DIR, "output")
UPLOAD_DIR = os.path.join(OUTPUT_DIR, "uploads")
LOG_DIR = os.path.join(BASE_DIR, "logs")

# Create necessary directories
for directory in [OUTPUT_DIR, UPLOAD_DIR, LOG_DIR]:
    os.makedirs(directory, exist_ok=True)

# Persistent state for the background handler and window manager
AUTOMATION_STATE_FILE = os.path.join(BASE_DIR, "automation_state.json")

# Storage keys inside AUTOMATION_STATE_FILE
AUTOMATION_WINDOWS_KEY = "automationWindows"
JOB_DESCRIPTION_CACHE_KEY = "jobDescriptionCache"

# Applications allowed per plan; "credit" users spend one credit per application
PLAN_LIMITS = {
    "free": 5,
    "starter": 50,
    "pro": 200,
    "unlimited": float("inf"),
}
