"""

An Asynchronous FIFO Log of Items

"""
from __future__ import annotations
from typing import Generic, TypeVar
from dataclasses import dataclass, field
from collections import deque
import asyncio

__all__ = [
  'MessageLog',
]

I = TypeVar("I")

@dataclass
class _MessageLogCtx:
  not_empty: asyncio.Event = field(default_factory=asyncio.Event)
  """Is the Log not empty"""

@dataclass
class MessageLog(Generic[I]):
  """An unbounded FIFO; pushing never blocks so it can be fed from synchronous callers."""

  log: deque[I] = field(default_factory=deque)
  """The Item Log"""
  _ctx: _MessageLogCtx = field(default_factory=_MessageLogCtx)

  def __len__(self) -> int: return len(self.log)

  def __contains__(self, item: I) -> bool: return item in self.log

  @property
  def empty(self) -> bool: return len(self.log) <= 0

  def clear(self) -> None:
    self.log.clear()
    self._ctx.not_empty.clear()

  def push(self, item: I) -> None:
    """Push an Item onto the tail of the Log"""
    self.log.append(item)
    self._ctx.not_empty.set()

  async def pop(self, block: bool = True) -> I | None:
    """Pop the head of the Log; if non-blocking & the log is empty return None."""
    while True:
      if block: await self._ctx.not_empty.wait()
      elif not self._ctx.not_empty.is_set(): return None
      if len(self.log) == 0: # Protect against another waiter draining the log first
        self._ctx.not_empty.clear()
        continue
      item = self.log.popleft()
      if len(self.log) == 0: self._ctx.not_empty.clear()
      return item
