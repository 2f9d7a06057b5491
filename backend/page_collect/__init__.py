"""网页快照收藏服务"""

__version__ = "0.1.0"
