"""
进程入口

    python -m page_collect                        # 正常启动服务
    page-collect --update-pid=123 --update-target=/path/to/exe   # 自更新模式（由旧进程启动）
"""
import logging
import sys
from typing import Optional, Sequence

import uvicorn

from .config import get_settings
from .main import configure_logging, create_app
from .updater import UpdaterMode, parse_launch_mode, run_updater_mode

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    settings = get_settings()
    configure_logging(settings)

    mode = parse_launch_mode(sys.argv[1:] if argv is None else argv)
    if isinstance(mode, UpdaterMode):
        return 0 if run_updater_mode(mode, settings) else 1

    app = create_app(settings)
    config = uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_config=None)
    server = uvicorn.Server(config)
    app.state.server = server
    logger.info(f"[{settings.APP_NAME}] 服务已启动 -> http://{settings.HOST}:{settings.PORT}")
    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
