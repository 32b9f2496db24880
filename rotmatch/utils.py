# MIT License
#
# Copyright (c) 2025 Sean Minhui Tashi Chua, and Anton Korosov
#
# Licensed under the MIT License. See the LICENSE file in the project root for full details.

"""
utils.py

Logging and configuration helpers for rotmatch
"""

import os
import logging
from datetime import datetime
import functools
import time
import yaml

APP_LOGGER_NAME = 'rotmatch'

def setup_logging(log_dir='logs',
                  logger_name=APP_LOGGER_NAME,
                  console_level=logging.INFO,
                  file_level=logging.DEBUG,
                  filename_prefix=APP_LOGGER_NAME,
                  persist_log=False):
    """
    Sets up logging.

    If persist_log is True, logs to both console and a file.
    If persist_log is False, logs only to the console at DEBUG level.

    Clears existing handlers first so repeated calls (notebooks, tests)
    do not duplicate output.
    """
    logger_instance = logging.getLogger(logger_name)

    if logger_instance.hasHandlers():
        logger_instance.handlers.clear()

    effective_console_level = logging.DEBUG if not persist_log else console_level

    log_level = min(effective_console_level, file_level) if persist_log else effective_console_level
    logger_instance.setLevel(log_level)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)-8s - %(message)s')
    console_h = logging.StreamHandler()
    console_h.setLevel(effective_console_level)
    console_h.setFormatter(formatter)
    logger_instance.addHandler(console_h)

    if persist_log:
        os.makedirs(log_dir, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_path = os.path.join(log_dir, f"{filename_prefix}_{timestamp}.log")

        file_h = logging.FileHandler(log_file_path)
        file_h.setLevel(file_level)
        file_h.setFormatter(formatter)
        logger_instance.addHandler(file_h)

        logger_instance.log_file_path = log_file_path
    else:
        logger_instance.log_file_path = None

    return logger_instance

# Module-level logger, silent until the application calls setup_logging.
logger = logging.getLogger(APP_LOGGER_NAME)
logger.propagate = False
logger.addHandler(logging.NullHandler())

def log_execution_time(func):
    """
    Decorator to log the execution time of functions and methods.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        exec_time = time.time() - start_time
        logger.debug(f"Time taken for {func.__name__}: {exec_time:.3f}s")
        return result
    return wrapper


def load_config(config_path):
    """
    Loads a YAML configuration file.

    Parameters:
        config_path (str): The path to the YAML configuration file.

    Returns:
        dict: The loaded configuration (empty dict for an empty file).
    """
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
        logger.info(f"Successfully loaded configuration from {config_path}")
        return config or {}
    except FileNotFoundError:
        logger.error(f"Configuration file not found at: {config_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file {config_path}: {e}")
        raise
