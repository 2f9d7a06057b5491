"""业务异常"""


class CollectError(Exception):
    """所有业务异常的基类"""
    pass


class InvalidInputError(CollectError):
    """请求缺少必填字段等输入错误，不重试"""
    pass


class StorageIOError(CollectError):
    """磁盘/数据库写入失败，本地磁盘错误不重试"""
    pass


class UpdateError(CollectError):
    """自更新下载/启动/替换失败，当前进程继续运行"""
    pass
