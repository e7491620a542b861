"""日志工具测试"""

import logging
import logging.handlers

from yhistory.config import LoggingSettings
from yhistory.log import (
    DEFAULT_LOG_FORMAT,
    MicrosecondFormatter,
    create_formatter,
    get_logger,
    setup_history_logger,
    setup_logger,
)


class TestGetLogger:
    """get_logger 测试"""

    def test_infer_module_name(self):
        """测试：无参数时使用调用模块名"""
        assert get_logger().name == __name__

    def test_short_name_prefixed(self):
        """测试：简写名称添加 yhistory 前缀"""
        assert get_logger("store").name == "yhistory.store"

    def test_dotted_name_kept(self):
        """测试：带点号的名称原样使用"""
        assert get_logger("sqlalchemy.engine").name == "sqlalchemy.engine"
        assert get_logger("yhistory").name == "yhistory"


class TestFormatter:
    """格式化器测试"""

    def test_microseconds(self):
        """测试：时间戳带 6 位微秒"""
        formatter = MicrosecondFormatter(fmt="%(asctime)s")
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        record.created = 1700000000.123456

        assert formatter.formatTime(record).endswith(".123456")

    def test_create_formatter(self):
        """测试：按参数选择格式化器"""
        assert isinstance(create_formatter(), MicrosecondFormatter)
        plain = create_formatter(use_microseconds=False)
        assert not isinstance(plain, MicrosecondFormatter)
        assert plain._fmt == DEFAULT_LOG_FORMAT


class TestSetupLogger:
    """setup_logger 测试"""

    def test_console_only(self):
        """测试：只输出到控制台"""
        logger = setup_logger("yhistory.test.console", level="DEBUG")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.StreamHandler)

    def test_rotating_file(self, tmp_path):
        """测试：写入轮转日志文件并自动创建目录"""
        log_file = tmp_path / "logs" / "history.log"

        logger = setup_logger("yhistory.test.file", log_file=str(log_file), console=False, max_bytes=1024)
        logger.info("写入测试")
        for handler in logger.handlers:
            handler.flush()

        assert "写入测试" in log_file.read_text(encoding="utf-8")
        assert isinstance(logger.handlers[0], logging.handlers.RotatingFileHandler)
        for handler in logger.handlers:
            handler.close()

    def test_setup_history_logger_from_settings(self, tmp_path):
        """测试：按 LoggingSettings 配置 yhistory 日志器"""
        config = LoggingSettings(level="WARNING", file_path=str(tmp_path / "h.log"), enable_console=False)

        logger = setup_history_logger(config)

        assert logger.name == "yhistory"
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
