import logging
import os
import sys

from dotenv import load_dotenv

from constants import DB_FILE, DEFAULT_HOST, DEFAULT_PORT, ENV_FILE


def get_path_for_write(relative_path):
    """
    【写数据专用】
    获取 exe 所在的真实目录（用户能看到的目录）
    用来读写：数据库(.db)、.env 配置
    """
    if os.path.isabs(relative_path):
        return relative_path
    if getattr(sys, "frozen", False):
        # 打包后的 exe，返回 exe 所在的文件夹
        return os.path.join(os.path.dirname(sys.executable), relative_path)
    return os.path.join(os.path.abspath("."), relative_path)


def load_settings(env_file: str | None = None) -> dict:
    """
    读取运行配置。

    优先级：
    1) 进程环境变量
    2) .env 文件（python-dotenv，不覆盖已存在的环境变量）
    3) constants.py 的默认值
    """
    load_dotenv(get_path_for_write(env_file or ENV_FILE), override=False)

    port_text = os.getenv("ERP_PORT", "").strip()
    try:
        port = int(port_text) if port_text else DEFAULT_PORT
    except ValueError:
        port = DEFAULT_PORT

    return {
        "db_file": get_path_for_write(os.getenv("ERP_DB_FILE", "").strip() or DB_FILE),
        "host": os.getenv("ERP_HOST", "").strip() or DEFAULT_HOST,
        "port": port,
        "log_level": (os.getenv("ERP_LOG_LEVEL", "").strip() or "INFO").upper(),
    }


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
