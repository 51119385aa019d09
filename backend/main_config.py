import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_DIR = os.getenv("CHAT_DB_DIR") or os.path.join(BASE_DIR, "db")
USER_DIR = os.path.join(DB_DIR, "user")
HISTORY_DB_PATH = os.path.join(USER_DIR, "history.db")
USERS_DB_PATH = os.path.join(USER_DIR, "users.db")

PROMPTS_DIR = os.path.join(BASE_DIR, "prompts")
DEFAULT_SYSTEM_PROMPT_PATH = os.path.join(PROMPTS_DIR, "academic_assistant_system_prompt.md")
