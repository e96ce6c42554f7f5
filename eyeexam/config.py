import os
from pydantic import BaseModel

class Settings(BaseModel):
    emr_api_url: str = os.getenv("EMR_API_URL", "http://localhost:8000/api")
    patient_api_url: str = os.getenv("PATIENT_API_URL") or os.getenv("EMR_API_URL", "http://localhost:8000/api")
    emr_api_token: str | None = os.getenv("EMR_API_TOKEN")
    emr_api_timeout: float = float(os.getenv("EMR_API_TIMEOUT", "30"))
    default_per_page: int = int(os.getenv("DEFAULT_PER_PAGE", "10"))
    search_debounce_ms: int = int(os.getenv("SEARCH_DEBOUNCE_MS", "500"))
    allow_origin: str = os.getenv("ALLOW_ORIGIN", "*")
    report_title: str = os.getenv("REPORT_TITLE", "Examination Report")
    use_consolidated_snapshot: bool = os.getenv("USE_CONSOLIDATED_SNAPSHOT", "false").lower() in ("1", "true", "yes")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

settings = Settings()
