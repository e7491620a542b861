"""
配置模块
提供历史记录组件的默认配置，业务项目可以继承并覆盖
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings

from ..utils import parse_file_size


class LoggingSettings(BaseSettings):
    """日志配置

    使用示例:
        from yhistory.config import LoggingSettings

        log_config = LoggingSettings(
            level="DEBUG",
            file_path="logs/history.log",
            file_max_bytes="20MB",
        )

        # 获取解析后的字节数
        max_bytes = log_config.parsed_file_max_bytes
    """
    level: str = Field(default="INFO", description="日志级别")
    file_path: str = Field(default="", description="日志文件路径，为空表示不写文件")
    file_max_bytes: str = Field(default="10MB", description="单个日志文件最大大小")
    file_backup_count: int = Field(default=5, description="保留的备份文件数量")
    file_encoding: str = Field(default="utf-8", description="文件编码")
    enable_console: bool = Field(default=True, description="是否启用控制台输出")

    @computed_field
    @property
    def parsed_file_max_bytes(self) -> int:
        """解析文件最大字节数字符串为整数"""
        return parse_file_size(self.file_max_bytes)

    class Config:
        env_prefix = "YHISTORY_LOG_"


class HistorySettings(BaseSettings):
    """历史记录配置

    挂载到模型时未显式指定的选项从这里取默认值。

    配置优先级（从高到低）:
        挂载选项 > YAML 配置文件 > 环境变量 > 代码中的默认值

    使用示例:
        from yhistory.config import HistorySettings, load_yaml_config, configure

        settings = load_yaml_config("config/history.yaml", HistorySettings)
        configure(settings)

    YAML 配置示例 (config/history.yaml):
        collection_suffix: "_audit"
        timestamp_field: "modified_at"
        auto_create_tables: true
        logging:
          level: "DEBUG"

    环境变量示例:
        YHISTORY_COLLECTION_SUFFIX=_audit
        YHISTORY_AUTO_CREATE_TABLES=false
        YHISTORY_LOG_LEVEL=WARNING
    """
    collection_suffix: str = Field(default="_history", description="历史集合名后缀")
    timestamp_field: str = Field(default="updated_at", description="差异计算时忽略的自动维护时间戳字段")
    version_key: str = Field(default="__v", description="存储层版本号字段，写入历史前移除")
    auto_create_tables: bool = Field(default=True, description="首次写入时是否自动建表")
    document_id_max_length: int = Field(default=255, description="documentId 列的最大长度")
    logging: LoggingSettings = LoggingSettings()

    class Config:
        env_prefix = "YHISTORY_"


_settings: Optional[HistorySettings] = None


@lru_cache(maxsize=1)
def _default_settings() -> HistorySettings:
    return HistorySettings()


def get_settings() -> HistorySettings:
    """获取当前生效的历史记录配置

    未调用 configure() 时返回从环境变量构建的默认配置
    """
    if _settings is not None:
        return _settings
    return _default_settings()


def configure(settings: Optional[HistorySettings]) -> None:
    """设置进程级的历史记录配置

    Args:
        settings: 配置对象，传入 None 恢复默认配置

    注意:
        配置只影响之后挂载的模型，已挂载模型的 HistoryTarget 不会改变
    """
    global _settings
    _settings = settings
    _default_settings.cache_clear()
