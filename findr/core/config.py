import os
from enum import Enum
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from findr.utils.report_filter import SearchFields


class ResolvePolicy(str, Enum):
    OWNER = "owner"
    ANYONE = "anyone"


class Settings(BaseModel):
    database_url: str = "sqlite:///./findr.db"
    jwt_secret: str = "change-me"
    access_token_expire_minutes: int = 24 * 60  # 1 day

    # Blob storage (Cloudflare R2 or any S3 compatible endpoint)
    r2_bucket: Optional[str] = None
    cloudflare_account_id: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    max_upload_size_mb: int = 5

    resolve_policy: ResolvePolicy = ResolvePolicy.OWNER
    search_fields: SearchFields = SearchFields.TITLE_ONLY

    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def blob_endpoint_url(self) -> Optional[str]:
        if self.s3_endpoint_url:
            return self.s3_endpoint_url
        if self.cloudflare_account_id:
            return f"https://{self.cloudflare_account_id}.r2.cloudflarestorage.com"
        return None


def load_settings() -> Settings:
    load_dotenv()

    values = {
        "database_url": os.getenv("DATABASE_URL"),
        "jwt_secret": os.getenv("JWT_SECRET"),
        "access_token_expire_minutes": os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES"),
        "r2_bucket": os.getenv("R2_BUCKET"),
        "cloudflare_account_id": os.getenv("CLOUDFLARE_ACCOUNT_ID"),
        "s3_endpoint_url": os.getenv("S3_ENDPOINT_URL"),
        "aws_access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
        "aws_secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "max_upload_size_mb": os.getenv("MAX_UPLOAD_SIZE_MB"),
        "resolve_policy": os.getenv("RESOLVE_POLICY"),
        "search_fields": os.getenv("SEARCH_FIELDS"),
        "log_level": os.getenv("LOG_LEVEL"),
    }

    origins = os.getenv("CORS_ORIGINS")
    if origins:
        values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

    # unset variables fall back to the model defaults
    return Settings(**{k: v for k, v in values.items() if v is not None})


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
