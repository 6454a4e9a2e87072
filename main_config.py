import os

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))

DB_DIR = os.path.join(BASE_DIR, "db")
DATABASE_PATH = os.path.join(DB_DIR, "chat.db")

PROMPTS_DIR = os.path.join(BASE_DIR, "prompts")
DEFAULT_SYSTEM_PROMPT_PATH = os.path.join(PROMPTS_DIR, "memory_assistant_system_prompt.md")
