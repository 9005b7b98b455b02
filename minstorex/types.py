"""
MinStoreX 共用的型別定義。
"""
from typing import TYPE_CHECKING, Any, Callable, Protocol, TypeVar

if TYPE_CHECKING:
    from .actions import Action

S = TypeVar("S")  # 狀態類型
P = TypeVar("P")  # 負載類型
R = TypeVar("R")  # thunk 回傳值類型


class TrackFunction(Protocol):
    """thunk 收到的追蹤 dispatch，簽名與 Store.dispatch 相同。"""

    def __call__(self, action: Any, payload: Any = None) -> Any: ...


# 同步 action 的轉換函數: (state, payload) -> new_state
SyncFunc = Callable[[S, P], S]
# thunk action 的轉換函數: (state, payload, track) -> 任意值
ThunkFunc = Callable[[S, P, TrackFunction], R]

Subscriber = Callable[[Any, "Action[Any]"], None]
Unsubscribe = Callable[[], None]
DispatchFunction = Callable[..., Any]
StateSelector = Callable[[Any], Any]
