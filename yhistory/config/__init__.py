"""配置模块

提供配置管理功能：
- HistorySettings: 历史记录默认配置，支持 YAML + 环境变量
- LoggingSettings: 日志配置
- ConfigLoader: YAML 配置加载器

快速开始:
    from yhistory.config import HistorySettings, load_yaml_config, configure

    configure(load_yaml_config("config/history.yaml", HistorySettings))

配置优先级: load_yaml_config 的覆盖参数 > YAML 文件 > 环境变量 > 默认值
"""

from .settings import (
    HistorySettings,
    LoggingSettings,
    get_settings,
    configure,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    "HistorySettings",
    "LoggingSettings",
    "get_settings",
    "configure",
    "ConfigLoader",
    "load_yaml_config",
]
