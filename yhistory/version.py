"""版本信息"""

__version__ = "0.1.0"
__author__ = "yhistory"
__description__ = "文档变更历史记录（审计轨迹）组件"
