"""

# Listener Queue

Holds listener registrations that can't be attached yet.

- The `global` queue applies to every Client, present & future; entries persist until dequeued.
- The `per_client` queue applies to exactly one Client that doesn't exist yet; entries are consumed once, when that Client is created.

"""
from __future__ import annotations
from dataclasses import dataclass, field
from loguru import logger

from .channel import listener_t
from .messages import generate_id

queued_t = tuple[str, listener_t]

@dataclass
class ListenerQueue:
  global_listeners: dict[str, listener_t] = field(default_factory=dict)
  """Standing listeners: { listener_id: callback }"""
  per_client: dict[str, dict[str, listener_t]] = field(default_factory=dict)
  """Listeners waiting on a Client: { client_id: { listener_id: callback } }"""
  pending_warn_limit: int | None = None
  """Warn when a Client's slot grows past this size"""
  _index: dict[str, str | None] = field(default_factory=dict)
  """Where a queued listener lives: { listener_id: client_id or None for the global queue }"""

  def __contains__(self, listener_id: str) -> bool: return listener_id in self._index

  def enqueue_global(self, listener: listener_t, listener_id: str | None = None) -> str:
    listener_id = listener_id or generate_id('listener')
    self.global_listeners[listener_id] = listener
    self._index[listener_id] = None
    logger.trace(f"Queue: {listener_id} queued for all Clients")
    return listener_id

  def enqueue_per_client(self, client_id: str, listener: listener_t, listener_id: str | None = None) -> str:
    listener_id = listener_id or generate_id('listener')
    slot = self.per_client.setdefault(client_id, {})
    slot[listener_id] = listener
    self._index[listener_id] = client_id
    logger.trace(f"Queue: {listener_id} queued for Client {client_id}")
    if self.pending_warn_limit is not None and len(slot) > self.pending_warn_limit:
      logger.warning(f"Queue: {len(slot)} listeners are waiting on Client {client_id} which was never registered")
    return listener_id

  def dequeue(self, listener_id: str) -> None:
    """Remove a listener from whichever queue holds it; no-op if it was already flushed or dequeued"""
    if listener_id not in self._index: return
    client_id = self._index.pop(listener_id)
    if client_id is None:
      del self.global_listeners[listener_id]
    else:
      slot = self.per_client[client_id]
      del slot[listener_id]
      if len(slot) == 0: del self.per_client[client_id]
    logger.trace(f"Queue: {listener_id} dequeued")

  def drain_per_client(self, client_id: str) -> list[queued_t]:
    """Remove & return every listener waiting on the Client"""
    slot = self.per_client.pop(client_id, {})
    for listener_id in slot: del self._index[listener_id]
    return list(slot.items())

  def snapshot_global(self) -> list[queued_t]:
    return list(self.global_listeners.items())

  def pending(self, client_id: str | None = None) -> int:
    """Count queued listeners; either for a single Client or across every queue"""
    if client_id is not None: return len(self.per_client.get(client_id, {}))
    return len(self._index)

  def clear(self) -> None:
    self.global_listeners.clear()
    self.per_client.clear()
    self._index.clear()
