import logging
import os

from dotenv import load_dotenv

load_dotenv()

# Provider selection: google (Gemini API, default), openrouter, vllm
PROVIDER_DEFAULT = os.getenv("VIDYA_PROVIDER", "google").lower()

# Google Gemini API
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "") or os.getenv("API_KEY", "")

# OpenRouter configuration (cloud inference)
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")

# VLLM configuration (local OpenAI-compatible inference)
VLLM_BASE_URL = os.getenv("VLLM_BASE_URL", "http://localhost:8000/v1")
VLLM_API_KEY = os.getenv("VLLM_API_KEY", "not-needed")

# Chat and tutoring use the strong model; summaries and short messages the fast one
CHAT_MODEL = os.getenv("VIDYA_CHAT_MODEL", "gemini-2.5-pro")
FAST_MODEL = os.getenv("VIDYA_FAST_MODEL", "gemini-2.5-flash")


def _optional_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return float(raw)


CHAT_TEMPERATURE = _optional_float("VIDYA_CHAT_TEMPERATURE")
SUMMARY_TEMPERATURE = _optional_float("VIDYA_SUMMARY_TEMPERATURE", 0.3)

# History compaction: summarize once the buffer holds more than THRESHOLD turns,
# keeping the last RETAIN_TAIL turns verbatim
COMPACTION_THRESHOLD = int(os.getenv("VIDYA_COMPACTION_THRESHOLD", "10"))
COMPACTION_RETAIN_TAIL = int(os.getenv("VIDYA_COMPACTION_RETAIN_TAIL", "4"))

# Project root: directory containing vidya/ package (works from any cwd)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
LOG_FILE = os.path.join(PROJECT_ROOT, "logs", "vidya.log")
DB_PATH = os.getenv("VIDYA_DB_PATH", os.path.join(PROJECT_ROOT, "data", "conversations.db"))

# CLI conversations are stored under this user unless --user is given
DEFAULT_USER = os.getenv("VIDYA_USER", "local")


# Read version from VERSION file
def _get_version() -> str:
    version_file = os.path.join(PROJECT_ROOT, "VERSION")
    try:
        with open(version_file, "r") as f:
            return f.read().strip()
    except FileNotFoundError:
        return "0.0.0"  # Fallback if VERSION file doesn't exist


VERSION = _get_version()


def setup_logging(level: int = logging.INFO, console: bool = True) -> None:
    os.makedirs(os.path.dirname(LOG_FILE), exist_ok=True)
    handlers: list[logging.Handler] = [logging.FileHandler(LOG_FILE, encoding="utf-8")]
    if console:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        level=level,
        handlers=handlers,
    )
