# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import logging
import logging.handlers

import pytest

from clusternet._logging_config import CORE_LOG_FILE, init_basic_logging


class TestLoggingConfig:
    @pytest.fixture()
    def root_logger(self):
        root = logging.getLogger()
        level = root.level
        handlers = list(root.handlers)
        yield root
        for handler in root.handlers:
            if handler not in handlers:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)

    def test_logging_rotating_file(self, root_logger, tmp_path):
        log_dir = tmp_path / "logs"

        logger = init_basic_logging(str(log_dir), enable_console_logging=False, root_level=logging.DEBUG)

        assert logger is root_logger
        assert root_logger.level == logging.DEBUG
        file_handlers = [h for h in root_logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].baseFilename == str(log_dir / CORE_LOG_FILE)

        logging.getLogger("clusternet.core.network.vpc").debug("Reconciling VPC for cluster 'test-cluster'")
        file_handlers[0].flush()
        assert "Reconciling VPC for cluster 'test-cluster'" in (log_dir / CORE_LOG_FILE).read_text()

    def test_logging_console_only(self, root_logger):
        handler_count = len(root_logger.handlers)

        init_basic_logging(root_level=logging.WARNING)

        new_handlers = root_logger.handlers[handler_count:]
        assert len(new_handlers) == 1
        assert isinstance(new_handlers[0], logging.StreamHandler)
        assert new_handlers[0].level == logging.WARNING
