"""
RecruitAI Client - Configuration

Settings for the recruiting client: where the backend lives, how hard
to retry, how to log, and the small workflow knobs (accepted résumé
types, placeholder values for message templates).

Every value can be overridden from the environment or a `.env` file.
"""

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from loguru import logger

from recruitai.utils.logger import setup_logging

load_dotenv()


class ApiConfig(BaseSettings):
    """Recruiting backend connection settings"""

    base_url: str = Field("https://ai-recruiting.onrender.com")
    timeout: float = Field(30.0)

    # Retries apply to idempotent reads only
    retry_attempts: int = Field(3)
    retry_min_wait: float = Field(1.0)
    retry_max_wait: float = Field(8.0)

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return str(v).rstrip("/")

    @field_validator("retry_attempts", mode="before")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if int(v) < 1:
            raise ValueError("retry_attempts must be at least 1")
        return int(v)

    model_config = SettingsConfigDict(
        env_prefix="RECRUIT_API_", env_file=".env", case_sensitive=False, extra="ignore"
    )


class ApplicationConfig(BaseSettings):
    """General application settings"""

    base_dir: Path = Path(__file__).parent
    log_level: str = Field("INFO")
    log_to_file: bool = Field(True)
    debug: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix="RECRUIT_", env_file=".env", case_sensitive=False, extra="ignore"
    )


class WorkflowConfig(BaseSettings):
    """Submission and messaging behaviour"""

    accepted_resume_types: list[str] = ["application/pdf"]

    # Substituted when the candidate never shared a messaging handle
    contact_placeholder: str = Field("username")
    candidate_name_fallback: str = Field("Candidate")
    deep_link_base: str = Field("https://t.me")

    stale_while_revalidate: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix="RECRUIT_WORKFLOW_", env_file=".env", case_sensitive=False, extra="ignore"
    )


class Config:
    """Singleton configuration object"""

    _instance: Optional["Config"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, "_initialized") and self._initialized:
            return

        self.api = ApiConfig()
        self.app = ApplicationConfig()
        self.workflow = WorkflowConfig()

        setup_logging(
            log_level=self.app.log_level,
            base_dir=self.app.base_dir,
            log_to_file=self.app.log_to_file,
        )

        self._initialized = True

    def get_summary(self) -> dict:
        """Short configuration summary for the startup banner"""
        return {
            "backend": self.api.base_url,
            "timeout": self.api.timeout,
            "retry_attempts": self.api.retry_attempts,
            "accepted_resume_types": self.workflow.accepted_resume_types,
            "log_level": self.app.log_level,
        }


# Global config instance
config = Config()
logger.debug(f"Configuration loaded: {config.get_summary()}")
