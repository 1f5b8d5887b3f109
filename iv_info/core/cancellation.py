"""
取消信号
同一个 CancellationToken 贯穿聚合器 → 数据源 → 数据源内部请求
未传入令牌的调用各自创建新令牌
"""

import asyncio


class OperationCancelled(asyncio.CancelledError):
    """操作被取消（继承 CancelledError，不会被 except Exception 吞掉）"""


class CancellationToken:
    """简单的取消令牌"""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self):
        """已取消时抛出 OperationCancelled"""
        if self._cancelled:
            raise OperationCancelled()

