import contextlib
import logging
import threading
from typing import Any, Generic, List, Mapping, Optional, TypeVar, Union

from reactivex import Observable, Subject
from reactivex import operators as ops

from .actions import Action
from .config import StoreConfig
from .errors import StoreError, ValidationError, handle_error
from .types import StateSelector, Subscriber, TrackFunction, Unsubscribe


S = TypeVar("S")


def _read_field(action: Any, name: str) -> Any:
    """從 Action、映射或任意物件讀取欄位，不存在時返回 None。"""
    if isinstance(action, Mapping):
        return action.get(name)
    return getattr(action, name, None)


class Store(Generic[S]):
    """
    狀態容器，持有單一狀態並在每次同步狀態轉換後通知訂閱者。
    支援 thunk action 與巢狀 dispatch 的來源追蹤。
    """

    def __init__(self, initial_state: Optional[S] = None, config: Optional[StoreConfig] = None):
        """
        初始化 Store 實例。

        Args:
            initial_state: 初始狀態，可以是任意形狀的值。
            config: 可選的 StoreConfig。
        """
        self._config = StoreConfig.coerce(config)
        self._logger = logging.getLogger(f"minstorex.store.{self._config.name}")
        # 內部狀態，只會被整體替換
        self._state = initial_state
        # 訂閱者列表，註冊順序即通知順序
        self._subscribers: List[Subscriber] = []
        # 動作流與狀態流（Subject），供 reactivex 觀察
        self._action_subject = Subject()
        self._state_subject = Subject()
        self._torn_down = False
        # thread_safe 時以可重入鎖保護，讓同一執行緒的巢狀 dispatch 仍可進行
        self._lock = threading.RLock() if self._config.thread_safe else None

    @property
    def config(self) -> StoreConfig:
        return self._config

    def _guard(self):
        return self._lock if self._lock is not None else contextlib.nullcontext()

    @handle_error
    def dispatch(self, action: Union[Action[Any], Mapping[str, Any]], payload: Any = None) -> Any:
        """
        分發一個動作。

        同步 action 會以 ``func(state, payload)`` 的結果替換狀態並依序通知訂閱者；
        thunk action 則以 ``func(state, payload, track)`` 執行並原樣返回其結果，
        不直接改變狀態也不通知訂閱者。

        Args:
            action: 要分發的 Action，或包含 type/func 的映射。
            payload: 傳給 action.func 的負載。

        Returns:
            thunk action 返回其 func 的返回值；同步 action 返回 None。

        Raises:
            ValidationError: action.func 不可呼叫或 action.type 不是字串時，
                在任何狀態變更之前拋出。
        """
        return self._dispatch(action, payload)

    def _dispatch(self, action: Any, payload: Any, by: Optional[Action[Any]] = None) -> Any:
        func = _read_field(action, "func")
        if not callable(func):
            raise ValidationError(
                "action.func must be a function",
                field="func", value=func, expected_type="callable",
            )
        action_type = _read_field(action, "type")
        if not isinstance(action_type, str):
            raise ValidationError(
                "action.type must be a string",
                field="type", value=action_type, expected_type="str",
            )

        # 複製 action 並設定 payload，呼叫者的原始對象不受影響
        if isinstance(action, Mapping):
            action = Action.from_mapping(action)
        elif not isinstance(action, Action):
            action = Action(
                action_type,
                func,
                thunk=bool(_read_field(action, "thunk")),
                by=_read_field(action, "by"),
            )
        changes = {"payload": payload}
        if by is not None:
            changes["by"] = by
        action = action.replace(**changes)

        if self._config.debug:
            self._logger.debug(
                "dispatch %s%s",
                " <- ".join(a.type for a in action.lineage()),
                " (thunk)" if action.thunk else "",
            )

        if action.thunk:
            return action.func(self._state, payload, self._tracker(action))

        with self._guard():
            old_state = self._state
            self._state = action.func(old_state, payload)
            new_state = self._state

            # 先推送到可觀察流，訂閱者中的巢狀 dispatch 才會排在本次轉換之後
            self._state_subject.on_next((old_state, new_state))
            self._action_subject.on_next(action)

            # 通知訂閱者；本輪通知期間的訂閱與取消從下一次 dispatch 起生效
            for subscriber in tuple(self._subscribers):
                subscriber(new_state, action)

    def _tracker(self, parent: Action[Any]) -> TrackFunction:
        """
        建立 thunk 專用的 dispatch，所有經由它分發的 action 都會標記 ``by=parent``。

        Args:
            parent: 已套用 payload 的 thunk Action 副本。
        """
        def track(action: Any, payload: Any = None) -> Any:
            return self._dispatch(action, payload, by=parent)
        return track

    @handle_error
    def subscribe(self, fn: Subscriber) -> Unsubscribe:
        """
        註冊一個訂閱者，在每次同步狀態轉換後以 (state, action) 呼叫。

        Args:
            fn: 訂閱者函數。

        Returns:
            取消訂閱函數。它會移除該函數在列表中第一個出現的位置（以 identity 比對），
            重複呼叫不會再有效果。

        Raises:
            ValidationError: fn 不可呼叫時。
        """
        if not callable(fn):
            raise ValidationError(
                "subscriber must be a function",
                field="fn", value=fn, expected_type="callable",
            )

        with self._guard():
            self._subscribers.append(fn)
        self._logger.debug("subscriber added: %r", fn)

        active = True

        def unsubscribe() -> None:
            nonlocal active
            if not active:
                return
            with self._guard():
                for index, registered in enumerate(self._subscribers):
                    if registered is fn:
                        del self._subscribers[index]
                        active = False
                        break
            if not active:
                self._logger.debug("subscriber removed: %r", fn)

        return unsubscribe

    def get_state(self) -> Optional[S]:
        """
        獲取當前狀態。

        Returns:
            當前持有的狀態值。
        """
        return self._state

    @property
    def state(self) -> Optional[S]:
        """當前狀態的唯讀屬性，與 get_state() 相同。"""
        return self._state

    def select(self, selector: Optional[StateSelector] = None) -> Observable:
        """
        選擇狀態的一部分進行觀察。

        Args:
            selector: 一個函數，接收整個狀態並返回希望觀察的部分；省略時觀察整個狀態。

        Returns:
            一個可觀察對象，在選取值改變時發送 (舊值, 新值)。

        Raises:
            StoreError: Store 已經 teardown 時。
        """
        if self._torn_down:
            raise StoreError("store has been torn down", operation="select")
        if selector is None:
            selector = _identity

        return self._state_subject.pipe(
            # 將元組 (old_state, new_state) 轉換為 (selector(old_state), selector(new_state))
            ops.map(lambda states: (selector(states[0]), selector(states[1]))),
            # 只有當新值變化時才發出
            ops.distinct_until_changed(lambda pair: pair[1]),
        )

    @property
    def actions(self) -> Observable:
        """每個已套用的同步 Action（副本）組成的可觀察流。"""
        return self._action_subject

    def teardown(self) -> None:
        """
        結束狀態流與動作流。之後 dispatch 仍可使用，但不再推送到可觀察流。
        """
        if self._torn_down:
            return
        self._torn_down = True
        self._state_subject.on_completed()
        self._action_subject.on_completed()
        self._logger.debug("store torn down")

    def __enter__(self) -> "Store[S]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()

    def __repr__(self):
        return f"<Store name='{self._config.name}' subscribers={len(self._subscribers)}>"


def _identity(value: Any) -> Any:
    return value


def create_store(
    initial_state: Optional[S] = None,
    config: Optional[Union[StoreConfig, Mapping[str, Any]]] = None,
) -> Store[S]:
    """
    創建一個新的 Store 實例。

    Args:
        initial_state: 初始狀態。
        config: StoreConfig 或其欄位組成的映射。

    Returns:
        Store: 新創建的 Store 實例，狀態與訂閱者都不與其他 Store 共享。
    """
    return Store(initial_state, StoreConfig.coerce(config))
