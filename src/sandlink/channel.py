"""

# Message Channels

One Channel wraps the transport endpoint of a single sandboxed client.

- Callers `subscribe` callbacks & receive every inbound message in subscription order.
- A reserved handshake listener is installed when the channel is created; it is never exposed to callers & is excluded from `listener_count`.
- Messages sent before the sandbox announces itself (`initialized`) are held in an outbox & flushed in order once the handshake arrives.

"""
from __future__ import annotations
import asyncio
from abc import abstractmethod
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field, KW_ONLY
from typing import Any, Protocol, runtime_checkable
from loguru import logger

from .errors import Error, NO_ERROR, NO_ERROR_T
from .messages import Message, MessageKind, generate_id

listener_t = Callable[[Message[Any]], Any]
rx_t = Callable[[bytes], None]

HANDSHAKE_LISTENER_ID = 'handshake'
"""The ListenerId reserved for the channel's own handshake listener"""

@runtime_checkable
class Transport(Protocol):
  """The opaque endpoint of a sandboxed client; implementation is backend dependent"""

  @abstractmethod
  def bind(self, rx: rx_t) -> None:
    """Route inbound frames to `rx`; delivery may happen at any later point in time"""
    ...

  @abstractmethod
  def post(self, data: bytes) -> None:
    """Hand an outbound frame to the transport; must not block"""
    ...

  @abstractmethod
  def unbind(self) -> None:
    """Stop routing inbound frames"""
    ...

@dataclass
class _ChannelCtx:
  connected: asyncio.Event = field(default_factory=asyncio.Event)
  """Set once the sandbox's handshake was received"""
  closed: bool = False
  """The Channel was closed; nothing is sent or delivered anymore"""
  outbox: deque[Message[Any]] = field(default_factory=deque)
  """Messages sent before the handshake"""

@dataclass
class MessageChannel:
  """The per client subscribe/send/receive abstraction over a Transport"""

  channel_id: str
  """The ID of the Client this Channel belongs to"""
  target: Transport
  """The transport endpoint"""
  _: KW_ONLY
  listeners: dict[str, listener_t] = field(default_factory=dict)
  """The currently subscribed listeners, in subscription order"""
  _ctx: _ChannelCtx = field(default_factory=_ChannelCtx)

  def __post_init__(self):
    self.listeners[HANDSHAKE_LISTENER_ID] = self._on_handshake
    self.target.bind(self._rx)
    logger.trace(f"Channel {self.channel_id}: created")

  @property
  def listener_count(self) -> int:
    """The number of caller visible listeners"""
    return len(self.listeners) - 1

  @property
  def connected(self) -> bool: return self._ctx.connected.is_set()

  @property
  def closed(self) -> bool: return self._ctx.closed

  def subscribe(self, listener: listener_t) -> str:
    """Subscribe a listener to inbound messages; returns its ListenerId"""
    listener_id = generate_id('listener')
    self.listeners[listener_id] = listener
    logger.trace(f"Channel {self.channel_id}: subscribed {listener_id}")
    return listener_id

  def unsubscribe(self, listener_id: str) -> None:
    """Unsubscribe a listener; unknown or already removed IDs are ignored"""
    if listener_id == HANDSHAKE_LISTENER_ID:
      logger.debug(f"Channel {self.channel_id}: ignoring a request to unsubscribe the handshake listener")
      return
    if self.listeners.pop(listener_id, None) is not None: logger.trace(f"Channel {self.channel_id}: unsubscribed {listener_id}")

  def send(self, message: Message[Any]) -> Error | NO_ERROR_T:
    """Send a message to the client; held back until the handshake completes"""
    if self._ctx.closed:
      logger.debug(f"Channel {self.channel_id}: dropping `{Message.kind(message)}` message; the channel is closed")
      return { 'kind': 'closed', 'message': f"Channel `{self.channel_id}` is closed" }
    message['metadata']['channel'] = self.channel_id
    if not self.connected:
      logger.trace(f"Channel {self.channel_id}: holding `{Message.kind(message)}` message until the handshake")
      if Message.kind(message) == MessageKind.COMPILE: # Only the latest run request matters
        self._ctx.outbox = deque(m for m in self._ctx.outbox if Message.kind(m) != MessageKind.COMPILE)
      self._ctx.outbox.append(message)
      return NO_ERROR
    self.target.post(Message.marshal(message))
    return NO_ERROR

  def dispatch(self, message: Message[Any]) -> None:
    """Deliver an inbound message to every subscribed listener"""
    if self._ctx.closed: return
    for listener_id, listener in list(self.listeners.items()):
      if listener_id not in self.listeners: continue # Revoked by an earlier listener
      try: listener(message)
      except Exception:
        logger.opt(exception=True).warning(f"Channel {self.channel_id}: listener {listener_id} failed on `{Message.kind(message)}`")

  async def wait(self, timeout: float | None = None) -> Error | NO_ERROR_T:
    """Wait until the sandbox completed the handshake"""
    if self._ctx.closed: return { 'kind': 'closed', 'message': f"Channel `{self.channel_id}` is closed" }
    try: await asyncio.wait_for(self._ctx.connected.wait(), timeout)
    except asyncio.TimeoutError:
      return { 'kind': 'timeout', 'message': f"Client `{self.channel_id}` did not complete the handshake within {timeout}s" }
    return NO_ERROR

  def close(self) -> None:
    """Close the Channel; the transport is unbound & pending messages dropped"""
    if self._ctx.closed: return
    self._ctx.closed = True
    if len(self._ctx.outbox) > 0: logger.debug(f"Channel {self.channel_id}: dropping {len(self._ctx.outbox)} unsent messages")
    self._ctx.outbox.clear()
    self.target.unbind()
    logger.trace(f"Channel {self.channel_id}: closed")

  def _rx(self, data: bytes) -> None:
    try: message = Message.unmarshal(data)
    except ValueError:
      logger.opt(exception=True).warning(f"Channel {self.channel_id}: discarding a malformed frame")
      return
    self.dispatch(message)

  def _on_handshake(self, message: Message[Any]) -> None:
    if Message.kind(message) != MessageKind.INITIALIZED or self.connected: return
    logger.debug(f"Channel {self.channel_id}: handshake complete")
    self._ctx.connected.set()
    while len(self._ctx.outbox) > 0:
      self.target.post(Message.marshal(self._ctx.outbox.popleft()))
