"""
基於 MinStoreX 的 Action 定義模組。

此模組提供 Action 類別以及創建 Action 的功能。
Action 自帶轉換函數 ``func``，Store 不需要 reducer 就能依據它計算新狀態。
Action 是不可變對象：dispatch 時只會產生帶有 payload 的新副本。
"""
from typing import Any, Callable, Dict, Generic, Iterator, Mapping, Optional

from immutables import Map

from .types import P, SyncFunc, ThunkFunc


_FIELDS = ("type", "func", "payload", "thunk", "by")


class Action(Generic[P]):
    """
    表示一個狀態轉換請求。

    泛型參數:
        P: 負載的類型

    屬性:
        type: 動作的類型字符串，僅供識別
        func: 轉換函數，同步為 (state, payload)，thunk 為 (state, payload, track)
        payload: 動作的負載數據（可選）
        thunk: 是否以 thunk 方式執行
        by: 觸發此動作的外層 thunk Action（來源追蹤）
    """
    __slots__ = ("_data",)

    def __init__(
        self,
        type: str,
        func: Callable[..., Any],
        payload: Optional[P] = None,
        thunk: bool = False,
        by: Optional["Action[Any]"] = None,
    ):
        # 所有欄位存放在不可變的 Map 中，副本之間共享結構
        object.__setattr__(
            self,
            "_data",
            Map(type=type, func=func, payload=payload, thunk=thunk, by=by),
        )

    def __setattr__(self, name, value):
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def __delattr__(self, name):
        raise AttributeError(f"Cannot delete immutable instance attribute '{name}'")

    def __getattr__(self, name):
        # 由映射建立時保留的額外欄位
        if name != "_data":
            try:
                return self._data[name]
            except KeyError:
                pass
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def __copy__(self):
        return self

    def __reduce__(self):
        return (_restore_action, (type(self), dict(self._data)))

    @property
    def type(self) -> str:
        return self._data["type"]

    @property
    def func(self) -> Callable[..., Any]:
        return self._data["func"]

    @property
    def payload(self) -> Optional[P]:
        return self._data["payload"]

    @property
    def thunk(self) -> bool:
        return self._data["thunk"]

    @property
    def by(self) -> Optional["Action[Any]"]:
        return self._data["by"]

    def replace(self, **changes: Any) -> "Action[Any]":
        """
        返回套用變更後的淺拷貝，原對象保持不變。

        Args:
            **changes: 要替換的欄位，只允許已存在的欄位（type、func、payload、thunk、by 與額外欄位）。

        Returns:
            新的 Action 實例。
        """
        unknown = set(changes) - set(self._data)
        if unknown:
            raise AttributeError(
                f"'{type(self).__name__}' object has no attribute '{sorted(unknown)[0]}'"
            )
        clone = type(self).__new__(type(self))
        object.__setattr__(clone, "_data", self._data.update(changes))
        return clone

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Action[Any]":
        """
        由字典等無型別輸入建立 Action，未提供的欄位使用預設值。
        五個標準欄位以外的鍵會原樣保留，可透過屬性讀取。

        Args:
            data: 至少包含 type 與 func 的映射。

        Returns:
            新的 Action 實例。
        """
        action = cls(
            data.get("type"),
            data.get("func"),
            payload=data.get("payload"),
            thunk=bool(data.get("thunk", False)),
            by=data.get("by"),
        )
        extras = {key: value for key, value in data.items() if key not in _FIELDS}
        if extras:
            object.__setattr__(action, "_data", action._data.update(extras))
        return action

    def lineage(self) -> Iterator["Action[Any]"]:
        """
        依序產生自身以及每一層 ``by`` 祖先，由近到遠。
        """
        current: Optional[Action[Any]] = self
        while current is not None:
            yield current
            current = current.by

    @property
    def root(self) -> "Action[Any]":
        """最外層的來源 Action；沒有 ``by`` 時即為自身。"""
        *_, last = self.lineage()
        return last

    def to_dict(self) -> Dict[str, Any]:
        """
        轉為一般字典，方便除錯與記錄因果鏈。``func`` 以其限定名稱表示。
        """
        func = self.func
        data = {key: value for key, value in self._data.items() if key not in _FIELDS}
        data.update({
            "type": self.type,
            "func": getattr(func, "__qualname__", repr(func)),
            "payload": self.payload,
            "thunk": self.thunk,
            "by": self.by.to_dict() if self.by is not None else None,
        })
        return data

    def __repr__(self):
        by = f", by='{self.by.type}'" if self.by is not None else ""
        kind = "Thunk" if self.thunk else "Action"
        return f"{kind}(type='{self.type}', payload={repr(self.payload)}{by})"


def _restore_action(cls, data):
    """pickle 還原用：不經過 __setattr__ 直接重建不可變的 Action。"""
    action = cls.__new__(cls)
    object.__setattr__(action, "_data", Map(data))
    return action


def create_action(action_type: str, func: "SyncFunc[Any, P]") -> Action[P]:
    """
    創建一個同步 Action。

    Args:
        action_type: Action 的類型標識符
        func: 轉換函數，接收 (state, payload) 並返回新狀態

    Returns:
        同步執行的 Action

    範例:
        >>> add = create_action("[Counter] Add", lambda state, amount: state + amount)
        >>> store.dispatch(add, 5)
    """
    return Action(action_type, func)


def create_thunk(action_type: str, func: "ThunkFunc[Any, P, Any]") -> Action[P]:
    """
    創建一個 thunk Action。

    thunk 的轉換函數不直接返回新狀態，而是透過第三個參數 ``track``
    發出其他 Action；這些 Action 的 ``by`` 會指向此 thunk。

    Args:
        action_type: Action 的類型標識符
        func: 轉換函數，接收 (state, payload, track)，返回值原樣交給 dispatch 的呼叫者

    Returns:
        以 thunk 方式執行的 Action

    範例:
        >>> def load(state, user_id, track):
        ...     track(set_loading, True)
        ...     return api.fetch(user_id)
        >>> fetch_user = create_thunk("[User] Fetch", load)
    """
    return Action(action_type, func, thunk=True)
