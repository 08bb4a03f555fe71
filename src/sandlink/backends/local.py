"""
An in-process sandbox endpoint.

- Binding starts the sandbox's delivery loop; the first thing it delivers is the `initialized` handshake.
- Posted frames are queued in a `MessageLog` & processed by the loop, never inline, so delivery is asynchronous
  relative to the sender just like a real cross-boundary transport.
- An optional `responder` plays the part of the sandbox: it is handed every posted message & may answer with any
  number of `(kind, payload)` replies which are delivered back through the bound receiver.
"""
from __future__ import annotations
import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, KW_ONLY
from typing import Any
from loguru import logger

from ..channel import Transport, rx_t
from ..log import MessageLog
from ..messages import Message, MessageKind

reply_t = tuple[str, dict]
responder_t = Callable[[Message[Any]], Iterable[reply_t] | None]

@dataclass
class _LoopbackCtx:
  rx: rx_t | None = None
  """The bound receiver"""
  task: asyncio.Task | None = None
  """The sandbox's delivery loop"""
  inbox: MessageLog[bytes] = field(default_factory=MessageLog)
  """Frames posted by the host, waiting on the sandbox"""

@dataclass
class LoopbackTransport(Transport):
  responder: responder_t | None = None
  """Plays the sandbox; answers posted messages"""
  _: KW_ONLY
  handshake: bool = True
  """Announce the sandbox as soon as the transport is bound"""
  sent: list[Message[Any]] = field(default_factory=list)
  """Every message the host posted, in order"""
  _ctx: _LoopbackCtx = field(default_factory=_LoopbackCtx)

  @property
  def bound(self) -> bool: return self._ctx.rx is not None

  def bind(self, rx: rx_t) -> None:
    """Bind the receiver & start the delivery loop; must be called from a running event loop"""
    if self._ctx.rx is not None: raise RuntimeError("the transport is already bound")
    self._ctx.task = asyncio.get_running_loop().create_task(self._loop())
    self._ctx.rx = rx

  def unbind(self) -> None:
    if self._ctx.task is not None: self._ctx.task.cancel()
    self._ctx.task = None
    self._ctx.rx = None
    self._ctx.inbox.clear()

  def post(self, data: bytes) -> None:
    if self._ctx.rx is None: raise RuntimeError("the transport isn't bound")
    self.sent.append(Message.unmarshal(data))
    self._ctx.inbox.push(data)

  def emit(self, kind: str, payload: dict | None = None) -> None:
    """Deliver a message from the sandbox on the next iteration of the event loop"""
    if self._ctx.rx is None: raise RuntimeError("the transport isn't bound")
    asyncio.get_running_loop().call_soon(self._deliver, Message.factory(kind, payload, sender='sandbox'))

  def _deliver(self, message: Message[Any]) -> None:
    if self._ctx.rx is None:
      logger.trace(f"Loopback: dropping `{Message.kind(message)}`; the transport was unbound")
      return
    self._ctx.rx(Message.marshal(message))

  async def _loop(self) -> None:
    try:
      if self.handshake: self._deliver(Message.factory(MessageKind.INITIALIZED, sender='sandbox'))
      while True:
        message = Message.unmarshal(await self._ctx.inbox.pop())
        if self.responder is None: continue
        try:
          for kind, payload in self.responder(message) or ():
            self._deliver(Message.factory(kind, payload, sender='sandbox'))
        except Exception:
          logger.opt(exception=True).warning(f"Loopback: the sandbox failed to answer `{Message.kind(message)}`")
    except asyncio.CancelledError:
      logger.trace("Loopback: delivery loop cancelled")
      raise
