"""系统相关 Schema（统计 / 版本 / 扩展状态）"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class StatsResponse(BaseModel):
    """统计信息"""
    model_config = ConfigDict(populate_by_name=True)

    total: int
    total_size: int = Field(serialization_alias="totalSize")
    trash_count: int = Field(serialization_alias="trashCount")


class VersionInfo(BaseModel):
    """版本信息"""
    model_config = ConfigDict(populate_by_name=True)

    current: str
    latest: str
    update_available: bool = Field(False, serialization_alias="updateAvailable")
    releases_url: str = Field(serialization_alias="releasesUrl")
    download_url: Optional[str] = Field(None, serialization_alias="downloadUrl")


class ExtensionStatus(BaseModel):
    installed: bool
