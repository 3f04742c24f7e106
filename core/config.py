from dataclasses import dataclass
import os


def _get_bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


DEFAULT_PATTERN_FILE = os.path.join(os.path.dirname(__file__), "patterns.yaml")


@dataclass
class Settings:
    min_line_length: int = _get_int_env("DOCREQ_MIN_LINE_LENGTH", 20)
    max_line_length: int = _get_int_env("DOCREQ_MAX_LINE_LENGTH", 500)
    include_low_priority: bool = _get_bool_env("DOCREQ_INCLUDE_LOW_PRIORITY", True)
    pattern_file: str = os.getenv("DOCREQ_PATTERN_FILE", DEFAULT_PATTERN_FILE)
    enable_pdf_page_triage: bool = _get_bool_env("DOCREQ_PDF_PAGE_TRIAGE", True)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
