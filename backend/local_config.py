"""
Local Configuration for AutoApply Backend
@file purpose: Local configuration values read from root .env file

🔧 SETUP INSTRUCTIONS:
1. Edit the .env file in the project root
2. Set APP_ENV to 'local' or 'production' (default: production)
3. API_HOST is picked from APP_ENV unless AUTOAPPLY_API_HOST overrides it

ℹ️ ARCHITECTURE:
- AI answers, resume tailoring, user details and applied-job tracking
  all live behind the same API host
- The resume optimizer is a separate service (RESUME_SERVICE_URL)
"""

import os  # noqa: E402
from pathlib import Path  # noqa: E402

from dotenv import load_dotenv  # noqa: E402

# Load environment variables from root .env file
root_dir = Path(__file__).parent.parent
env_path = root_dir / ".env"
load_dotenv(env_path)

# Get environment setting
ENV = os.getenv("APP_ENV", "production")

# 🌐 API SETTINGS
# Both 'local' and 'test' use localhost (test is for release builds that connect locally)
if ENV in ("local", "test"):
    DEFAULT_API_HOST = "http://localhost:3000"
    DEFAULT_RESUME_SERVICE_URL = "http://localhost:8000"
else:
    DEFAULT_API_HOST = "https://fastapply.co"
    DEFAULT_RESUME_SERVICE_URL = "https://resume-api.fastapply.co"

API_HOST = os.getenv("AUTOAPPLY_API_HOST", DEFAULT_API_HOST)
RESUME_SERVICE_URL = os.getenv("AUTOAPPLY_RESUME_SERVICE_URL", DEFAULT_RESUME_SERVICE_URL)

# Control server port (FastAPI)
CONTROL_PORT = int(os.getenv("AUTOAPPLY_CONTROL_PORT", "8765"))

# Development settings
DEBUG = ENV != "production"
