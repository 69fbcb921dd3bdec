"""Configuration for the Gymzy coach agent."""

import os

# LLM provider (Vertex AI when a project is set, otherwise API key auth)
GCP_PROJECT_ID = os.getenv("GCP_PROJECT_ID", "")
GCP_REGION = os.getenv("GCP_REGION", "europe-west1")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# LLM models
MODEL_NAME = os.getenv("GYMZY_MODEL", "gemini-2.5-flash")
STRUCTURED_TEMPERATURE = float(os.getenv("GYMZY_STRUCTURED_TEMPERATURE", "0.2"))
CHAT_TEMPERATURE = float(os.getenv("GYMZY_CHAT_TEMPERATURE", "0.7"))

# Rate-limit retry policy for the generator
GENERATOR_MAX_RETRIES = int(os.getenv("GYMZY_GENERATOR_MAX_RETRIES", "3"))
GENERATOR_RETRY_BASE_DELAY = float(os.getenv("GYMZY_GENERATOR_RETRY_BASE_DELAY", "2.0"))  # seconds

# Muscle recovery thresholds (weekly volume, weight x reps)
RECOVERY_HIGH_VOLUME = float(os.getenv("GYMZY_RECOVERY_HIGH_VOLUME", "1000"))
RECOVERY_LOW_VOLUME = float(os.getenv("GYMZY_RECOVERY_LOW_VOLUME", "200"))

# Workout composition caps
MAX_TARGET_MUSCLES = 3
EXERCISES_PER_MUSCLE = 2
MIN_EXERCISES = 3
MAX_EXERCISES = 6
DEFAULT_TARGET_MUSCLES = ("chest", "legs", "back")

# Reasoning machine
REASONING_STEP_BUDGET = int(os.getenv("GYMZY_REASONING_STEP_BUDGET", "10"))
MAX_CONFIDENCE = 0.95
ERROR_CONFIDENCE = 0.2

# Conversation memory
MAX_HISTORY_TURNS = int(os.getenv("GYMZY_MAX_HISTORY_TURNS", "20"))
PROMPT_HISTORY_MESSAGES = 5

# Confirmation gate
MAX_PENDING_CONFIRMATIONS = 200  # Evict oldest entries above this size

# Domain services (workouts, stats, profile, social)
GYMZY_SERVICES_BASE_URL = os.getenv("GYMZY_SERVICES_BASE_URL", "http://localhost:5001/gymzy/api")
GYMZY_SERVICES_API_KEY = os.getenv("GYMZY_SERVICES_API_KEY", "")
GYMZY_SERVICES_TIMEOUT = int(os.getenv("GYMZY_SERVICES_TIMEOUT", "10"))  # seconds
