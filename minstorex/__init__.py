"""
MinStoreX：最小化的單向資料流狀態容器。
"""

import logging

from .errors import (
    MinStoreXError, ValidationError, StoreError, ConfigurationError,
    ErrorHandler, global_error_handler, handle_error
)
from .actions import Action, create_action, create_thunk
from .config import StoreConfig
from .store import Store, create_store

# 函式庫本身不決定日誌輸出位置，交由使用者設定
logging.getLogger("minstorex").addHandler(logging.NullHandler())

# 匯出所有公開 API
__all__ = [
    # Errors
    "MinStoreXError", "ValidationError", "StoreError", "ConfigurationError",
    "ErrorHandler", "global_error_handler", "handle_error",

    # Actions
    "Action", "create_action", "create_thunk",

    # Store
    "Store", "StoreConfig", "create_store",
]
