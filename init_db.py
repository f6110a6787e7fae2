import logging
import os
import sys

from catalog.category_config import seed_default_categories
from catalog.database import RowStore
from catalog.util import configure_logging, load_settings

logger = logging.getLogger(__name__)


def init_db(db_file: str, reset: bool = False) -> int:
    """
    初始化数据库：建表、建触发器、写入默认类别

    输入参数:
        db_file (str): SQLite 数据库文件路径
        reset (bool): 为 True 时先删除已有数据库，确保是全新的

    返回值:
        int: 新写入的默认类别数量
    """
    if reset and os.path.exists(db_file):
        os.remove(db_file)

    store = RowStore(db_file)
    created = seed_default_categories(store)
    logger.info("数据库初始化完成：%s（新增默认类别 %d 个）", db_file, created)
    return created


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings["log_level"])
    init_db(settings["db_file"], reset="--reset" in sys.argv[1:])
