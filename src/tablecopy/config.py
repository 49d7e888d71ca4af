from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from .pipeline import DEFAULT_FLUSH_BYTES, FailurePolicy, PipelineConfig


class Settings(BaseSettings):
    USER: Optional[str] = None
    PASSWORD: Optional[str] = None
    OPTION_FILE: Optional[str] = None
    CHARSET: str = "binary"
    WAIT_TIMEOUT: int = 3600
    CONNECT_TIMEOUT: int = 10
    THREADS: int = Field(16, gt=0)
    QUEUE_CAPACITY: int = Field(100, gt=0)
    FLUSH_BYTES: int = Field(DEFAULT_FLUSH_BYTES, gt=0)
    CRAZY: bool = False
    FORCE: bool = False

    @property
    def failure_policy(self) -> FailurePolicy:
        return FailurePolicy.TOLERANT if self.FORCE else FailurePolicy.FAIL_FAST

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            workers=self.THREADS,
            queue_capacity=self.QUEUE_CAPACITY,
            flush_bytes=self.FLUSH_BYTES,
            policy=self.failure_policy,
        )

    class Config:
        env_prefix = "TABLECOPY_"
        env_file = ".env"
        case_sensitive = False
        frozen = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
