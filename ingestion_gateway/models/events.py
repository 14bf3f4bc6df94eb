from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ingestion_gateway.services.hashing import DIGEST_HEX_LENGTH


class IngestionEvent(BaseModel):
    """Fact record published once per accepted upload."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_hash: str = Field(
        alias="fileHash", min_length=DIGEST_HEX_LENGTH, max_length=DIGEST_HEX_LENGTH
    )
    s3_key: str = Field(alias="s3Key")
    original_name: str = Field(alias="originalName")
    user_id: str = Field(alias="userId")
    timestamp: int = Field(description="Epoch milliseconds at publish time.")
    file_size: int = Field(alias="fileSize", ge=0)
    preferred_language: str = Field(default="en", alias="preferredLanguage")

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class IngestionReceipt(BaseModel):
    """What the pipeline hands back to the HTTP layer."""

    model_config = ConfigDict(frozen=True)

    file_hash: str
    storage_key: str
    file_size: int
