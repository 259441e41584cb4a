from typing import Optional

from pydantic_settings import BaseSettings
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    AUTH0_ISSUER_BASE_URL: Optional[str] = None
    """Base URL of the Auth0 tenant (e.g., `https://tenant.eu.auth0.com`)."""

    AUTH0_CLIENT_ID: Optional[str] = None
    """Auth0 application client id."""

    AUTH0_CLIENT_SECRET: Optional[str] = None
    """Auth0 application client secret, used for the code exchange."""

    AUTH0_BASE_URL: Optional[str] = None
    """Public base URL of this service, used to build the OAuth redirect URI."""

    OPENROUTER_API_KEY: Optional[str] = None
    """OpenRouter API key for chat completions."""

    NEXT_PUBLIC_OPENROUTER_API_KEY: Optional[str] = None
    """Legacy name of the OpenRouter key, used when `OPENROUTER_API_KEY` is unset."""

    NEXT_PUBLIC_APP_URL: str = "http://localhost:3000"
    """Sent to OpenRouter as the `HTTP-Referer` header."""

    NEXT_PUBLIC_SUPABASE_URL: Optional[str] = None
    """Accepted for compatibility with older deployments; not used."""

    NEXT_PUBLIC_SUPABASE_ANON_KEY: Optional[str] = None
    """Accepted for compatibility with older deployments; not used."""

    NEXT_PUBLIC_ASSEMBLYAI_API_KEY: Optional[str] = None
    """AssemblyAI API key for audio transcription."""

    NEXT_PUBLIC_SITE_URL: Optional[str] = None
    """Where users land after signing out."""

    SECRET_KEY: str
    """Secret key used for signing session tokens and OAuth state."""

    ALGORITHM: str = "HS256"
    """JWT signing algorithm."""

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30
    """Lifetime of a session cookie (30 days)."""

    SESSION_REFRESH_MINUTES: int = 60 * 24
    """Sessions closer than this to expiry are reissued by the session gate."""

    COOKIE_SECURE: bool = True
    """Mark the session cookie `Secure` (disable only for local http)."""

    DB_DRIVER_NAME: str = "sqlite"
    """Database driver (e.g., `postgresql+psycopg`, `sqlite`)."""

    DB_USERNAME: Optional[str] = None
    """Database username credential."""

    DB_PASSWORD: Optional[str] = None
    """Database password credential."""

    DB_HOST: Optional[str] = None
    """Hostname or IP address of the database server."""

    DB_DATABASE_NAME: str = "mindfulness.db"
    """Name of the application's database (file name for SQLite)."""

    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    """OpenAI-compatible base URL of OpenRouter."""

    OPENROUTER_MODEL: str = "google/gemini-2.0-flash-001"
    """Model used when a request does not name one."""

    LOG_LEVEL: str = "INFO"
    """Root log level."""

    class Config:
        """
        Configuration for Pydantic settings. Loads values from `.env` file by default.
        """
        env_file = ".env"
        extra = "ignore"

    @property
    def openrouter_api_key(self) -> Optional[str]:
        return self.OPENROUTER_API_KEY or self.NEXT_PUBLIC_OPENROUTER_API_KEY

    @property
    def database_url(self) -> URL:
        return URL.create(
            drivername=self.DB_DRIVER_NAME,
            username=self.DB_USERNAME,
            password=self.DB_PASSWORD,
            host=self.DB_HOST,
            database=self.DB_DATABASE_NAME,
        )


# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
