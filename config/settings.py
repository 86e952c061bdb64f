# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment, SearchMode
import logging


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()

_log = logging.getLogger("config.settings")


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(..., validation_alias="APP_ENV")
    REDIS_URL: str = Field(..., validation_alias="REDIS_URL")
    PERSISTENCE_TTL_SECONDS: int = Field(
        default=30 * 24 * 3600, validation_alias="PERSISTENCE_TTL_SECONDS"
    )
    CASE_LOCK_SECONDS: int = Field(default=90, validation_alias="CASE_LOCK_SECONDS")

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(..., validation_alias="ALLOWED_ORIGIN")
    RATE_LIMIT_TIMES: int = Field(default=50, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=3600, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Anthropic Settings
    ANTHROPIC_API_URL: str = Field(..., validation_alias="ANTHROPIC_API_URL")
    ANTHROPIC_API_KEY: str = Field(..., validation_alias="ANTHROPIC_API_KEY")
    ANTHROPIC_MODEL: str = Field(..., validation_alias="ANTHROPIC_MODEL")
    ANTHROPIC_VERSION: str = Field(
        default="2023-06-01", validation_alias="ANTHROPIC_VERSION"
    )
    CLASSIFY_TIMEOUT_SECONDS: float = Field(
        default=25.0, validation_alias="CLASSIFY_TIMEOUT_SECONDS"
    )
    CLASSIFY_MAX_TOKENS: int = 1500

    # Retrieval
    EMBEDDING_MODEL_NAME: str = "sentence-transformers/all-MiniLM-L6-v2"
    KNOWLEDGE_SEARCH_MODE: SearchMode = Field(
        default=SearchMode.LEXICAL, validation_alias="KNOWLEDGE_SEARCH_MODE"
    )
    CANDIDATE_LIMIT: int = 30
    KNOWLEDGE_LIMIT: int = 15
    PROMPT_KNOWLEDGE_CHUNKS: int = 5
    PRECEDENT_LIMIT: int = 5

    # Clarification loop
    MAX_CLARIFICATION_ROUNDS: int = Field(
        default=5, validation_alias="MAX_CLARIFICATION_ROUNDS"
    )

    # Logging knobs
    LOGGER_NAME: str = "hs-classifier"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    # Prompts
    CLASSIFY_SYSTEM_PROMPT: str = (
        "You are an expert customs classifier working with a 10-digit national tariff "
        "nomenclature built on the Harmonized System.\n"
        "\n"
        "METHOD:\n"
        "- Establish what the product fundamentally is, what it is made of, and what it is used for.\n"
        "- Apply the General Interpretative Rules in order (GIR 1 first: heading texts and "
        "section/chapter notes are binding; GIR 3a most specific heading; GIR 3b essential character; "
        "GIR 6 for subheadings).\n"
        "- Cross-check against the knowledge excerpts and the organization's precedents.\n"
        "\n"
        "ABSOLUTE RULES:\n"
        "- Only codes in CANDIDATES may be recommended. Never invent a code.\n"
        "- Only cite excerpts listed under KNOWLEDGE or PRECEDENTS, using their doc_id and ref.\n"
        "- If the excerpts are insufficient, answer LOW_CONFIDENCE or NEED_INFO.\n"
        "- When unsure, return NEED_INFO with ONE discriminating next_question.\n"
    )

    RESPONSE_FORMAT_PROMPT: str = (
        "Return JSON ONLY, no code fences:\n"
        '{"status":"DONE|NEED_INFO|LOW_CONFIDENCE",'
        '"recommended_code":"<10-digit code from CANDIDATES or null>",'
        '"confidence":0-100,'
        '"justification":"2-3 sentences citing the evidence",'
        '"alternatives":[{"code":"...","reason":"...","confidence":0-100}],'
        '"evidence":[{"source":"omd|maroc|lois|finance|dum","doc_id":"...","ref":"...","excerpt":"..."}],'
        '"next_question":null or {"id":"q_...","label":"...","type":"yesno|select|text",'
        '"options":[{"value":"...","label":"..."}],"required":true}}\n'
    )


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
