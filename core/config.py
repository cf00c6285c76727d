from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Stia API"
    ENV: str = "development"

    # -------------------------------------------------
    # Front end
    # -------------------------------------------------
    BASE_URL: Optional[str] = None
    PROPERTY_NAME: str = "Your Property"

    FRONTEND_ORIGINS: List[str] = []
    BACKEND_CORS_ORIGINS: List[str] = []

    # Seconds before the UI swaps a spinner for retry / diagnostics links.
    # Purely advisory: requests are never cancelled server side.
    LOADING_TIMEOUT_SECONDS: int = Field(10, ge=1, le=120)

    # -------------------------------------------------
    # Supabase (store + auth)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # -------------------------------------------------
    # Third party
    # -------------------------------------------------
    GOOGLE_MAPS_API_KEY: Optional[str] = None

    # -------------------------------------------------
    # Provisioning
    # -------------------------------------------------
    PROVISIONING_COMPENSATE: bool = False
    SLUG_MAX_ATTEMPTS: int = Field(3, ge=1, le=10)

    model_config = SettingsConfigDict(case_sensitive=True)

    @property
    def invite_redirect_url(self) -> str:
        """Callback the invitation / confirmation emails point to."""
        if self.BASE_URL:
            return f"{self.BASE_URL.rstrip('/')}/auth/callback"
        if self.SUPABASE_URL:
            host = self.SUPABASE_URL.rstrip("/").replace(".supabase.co", ".vercel.app")
            return f"{host}/auth/callback"
        return "/auth/callback"


settings = Settings()

# -------------------------------------------------
# Build CORS list after loading settings
# -------------------------------------------------
cors_origins = []

if settings.BASE_URL:
    base = settings.BASE_URL
    if not base.startswith("http"):
        base = f"https://{base}"
    cors_origins.append(base.rstrip("/"))

cors_origins.extend([o.rstrip("/") for o in settings.FRONTEND_ORIGINS])

settings.BACKEND_CORS_ORIGINS = sorted(set(cors_origins))
