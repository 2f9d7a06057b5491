"""书签模型"""
from sqlalchemy import BigInteger, Column, Integer, String, Text
import time
import uuid

from ..database import Base


def now_ms() -> int:
    """当前时间（毫秒时间戳）"""
    return int(time.time() * 1000)


class Bookmark(Base):
    """网页快照书签表"""
    __tablename__ = "bookmarks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    url = Column(Text, nullable=False)
    title = Column(Text, default="")
    alias = Column(Text, default="")  # 用户自定义显示名
    favicon = Column(Text, default="")  # 内联图标（过大时丢弃）

    # 相对数据目录的路径，统一使用正斜杠；空字符串表示不存在
    file_path = Column(Text, default="")
    thumb_path = Column(Text, default="")
    file_size = Column(Integer, default=0)  # 保存时 HTML 的字节数

    created_at = Column(BigInteger, nullable=False, default=now_ms)
    tags = Column(Text, default="[]")  # JSON 数组
    bookmark_id = Column(Text, default="")  # 浏览器书签关联 ID

    deleted_at = Column(BigInteger, default=0)  # 0 = 正常，>0 = 进入回收站的时间
    notes = Column(Text, default="")

    def __repr__(self) -> str:
        return f"<Bookmark {self.id} {self.url!r}>"
