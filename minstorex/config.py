"""
Store 的配置模型。
"""
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError


class StoreConfig(BaseModel):
    """
    Store 的可選配置。

    屬性:
        name: Store 名稱，用於 logger 名稱與 repr
        thread_safe: 是否以 RLock 保護狀態替換、通知與訂閱列表
        debug: 是否在 DEBUG 等級記錄每次 dispatch 與其來源鏈
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="store", min_length=1)
    thread_safe: StrictBool = False
    debug: StrictBool = False

    @classmethod
    def coerce(cls, value: Optional[Union["StoreConfig", Mapping[str, Any]]]) -> "StoreConfig":
        """
        將 None、映射或 StoreConfig 統一轉為 StoreConfig。

        Args:
            value: 使用者提供的配置。

        Returns:
            驗證後的 StoreConfig。

        Raises:
            ConfigurationError: 配置內容不合法時。
        """
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError(
                f"config must be a StoreConfig or a mapping, got {type(value).__name__}",
                component="Store",
            )
        try:
            return cls.model_validate(dict(value))
        except PydanticValidationError as err:
            first = err.errors()[0]
            key = ".".join(str(part) for part in first["loc"]) or None
            raise ConfigurationError(
                f"invalid store config: {first['msg']}",
                component="Store",
                config_key=key,
                errors=err.errors(include_url=False),
            ) from err
