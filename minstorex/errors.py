"""
MinStoreX 錯誤處理模組。

定義庫內所有異常類型，以及集中式的錯誤處理器。
Store 本身從不吞掉錯誤：這裡的處理器只負責記錄與回報，之後原樣重新拋出。
"""

import functools
import logging
import os
import traceback
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

T = TypeVar("T")


class MinStoreXError(Exception):
    """所有 MinStoreX 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # 記錄建立錯誤時的呼叫堆疊，方便事後追查
        self.traceback = "".join(traceback.format_stack()[:-1])
        # 是否已經交給過 ErrorHandler，避免巢狀 dispatch 時重複回報
        self.reported = False

    def to_dict(self) -> Dict[str, Any]:
        """
        將錯誤轉為可序列化的字典。

        Returns:
            包含錯誤類型、訊息、細節與堆疊的字典。
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": dict(self.details),
            "traceback": self.traceback,
        }

    def __str__(self) -> str:
        return self.message


class ValidationError(MinStoreXError):
    """資料驗證錯誤，在任何狀態變更之前拋出。"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        expected_type: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        details = {"field": field, "value": repr(value), "expected_type": expected_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.field = field
        self.value = value
        self.expected_type = expected_type


class StoreError(MinStoreXError):
    """與 Store 生命週期相關的錯誤。"""

    def __init__(self, message: str, operation: str, **kwargs: Any) -> None:
        details = {"operation": operation}
        details.update(kwargs)
        super().__init__(message, details)
        self.operation = operation


class ConfigurationError(MinStoreXError):
    """配置相關的錯誤。"""

    def __init__(
        self,
        message: str,
        component: str,
        config_key: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        details = {"component": component, "config_key": config_key}
        details.update(kwargs)
        super().__init__(message, details)
        self.component = component
        self.config_key = config_key


class ErrorHandler:
    """
    集中式錯誤處理器，用於日誌記錄和錯誤報告。

    所有錯誤寫入 ``minstorex.errors`` logger；可選擇額外輸出到主控台或檔案，
    並轉交給已註冊的回調函數。
    """

    def __init__(
        self,
        log_to_console: bool = True,
        log_to_file: bool = False,
        log_file: Optional[str] = None,
    ) -> None:
        self.log_to_console = log_to_console
        self.log_to_file = log_to_file
        self.log_file = log_file
        self.handlers: List[Callable[[MinStoreXError], None]] = []
        self.logger = logging.getLogger("minstorex.errors")
        # 此實例實際掛上的 logging handler，close() 時移除
        self._log_handlers: List[logging.Handler] = []

        if log_to_file and not log_file:
            raise ConfigurationError(
                "log_file is required when log_to_file is enabled",
                component="ErrorHandler",
                config_key="log_file",
            )

        # logger 為所有 ErrorHandler 共用，已有相同輸出目的地時不重複掛上
        if log_to_console and not any(
            type(h) is logging.StreamHandler for h in self.logger.handlers
        ):
            self._attach(logging.StreamHandler())
        if log_to_file:
            path = os.path.abspath(log_file)
            if not any(
                getattr(h, "baseFilename", None) == path for h in self.logger.handlers
            ):
                self._attach(logging.FileHandler(path, encoding="utf-8"))

    def _attach(self, log_handler: logging.Handler) -> None:
        self.logger.addHandler(log_handler)
        self._log_handlers.append(log_handler)

    def close(self) -> None:
        """移除並關閉此實例掛上的 logging handler。"""
        for log_handler in self._log_handlers:
            self.logger.removeHandler(log_handler)
            log_handler.close()
        self._log_handlers.clear()

    def register_handler(self, handler: Callable[[MinStoreXError], None]) -> None:
        """
        註冊一個錯誤回調。

        Args:
            handler: 接收 MinStoreXError 的函數。
        """
        self.handlers.append(handler)

    def handle(self, error: Union[MinStoreXError, Exception]) -> None:
        """
        記錄錯誤並通知所有回調。非 MinStoreXError 的異常會先被包裝。

        Args:
            error: 要處理的錯誤。
        """
        if not isinstance(error, MinStoreXError):
            error = MinStoreXError(str(error), {"original_type": error.__class__.__name__})

        error.reported = True
        self.logger.error("%s: %s", error.__class__.__name__, error.message, extra={"details": error.details})
        for handler in self.handlers:
            handler(error)


# 單例錯誤處理器；預設只寫入 logging，由使用者決定輸出位置
global_error_handler = ErrorHandler(log_to_console=False)


def handle_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    裝飾器：將函數拋出的 MinStoreXError 回報給全域處理器後原樣重新拋出。

    使用者回調（action.func、subscriber）拋出的其他異常不經過處理器。
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except MinStoreXError as err:
            if not err.reported:
                global_error_handler.handle(err)
            raise
    return wrapper
