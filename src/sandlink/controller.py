"""

# Lifecycle Controller

The public surface: decides where a listener lands & remembers how to revoke it.

A registration is in exactly one of these states:

- **active(X)**: attached to Client X's channel.
- **queued-per-client**: waiting on a Client that doesn't exist yet; consumed once when it's registered.
- **standing**: a global registration; attached to every current Client & still queued for future ones.

Every live attachment is recorded in the unsubscribe tracker, `{ client_id: { listener_id: revoke } }`,
so tearing a Client down revokes exactly what was attached to it.

"""
from __future__ import annotations
import functools
from collections.abc import Callable
from dataclasses import dataclass, field, KW_ONLY
from typing import Any, Literal, TypedDict, NotRequired
from loguru import logger

from .channel import Transport, listener_t
from .config import ControllerConfig
from .errors import Error, NO_ERROR, NO_ERROR_T, DuplicateClient
from .messages import Message, MessageKind, OBJ, generate_id
from .queue import ListenerQueue
from .registry import Client, ClientRegistry

GLOBAL = '*'
"""The Subscription scope of a standing listener"""

revoke_t = Callable[[], None]
status_t = Literal['idle', 'running', 'closed']

@dataclass(frozen=True)
class Subscription:
  """The handle returned by `Controller.add_listener`; call it to unsubscribe.

  The handle only records where the registration was aimed; revoking looks up the Controller's current state
  so it stays correct no matter how many Clients came & went in the meantime. Revoking is idempotent.
  """
  controller: Controller = field(repr=False, compare=False)
  scope: str
  """The targeted Client ID or `GLOBAL`"""
  listener_id: str

  def __call__(self) -> None: self.revoke()

  @property
  def active(self) -> bool:
    """Is the listener attached to any Client or still queued"""
    return self.controller._is_live(self)

  def revoke(self) -> None: self.controller._revoke(self)

class _ControllerCtx(TypedDict):
  status: status_t
  """The current lifecycle status of the Controller"""
  request: NotRequired[dict]
  """The last run request; replayed to Clients registered while running"""

@dataclass
class Controller:
  """Manage the lifecycle of sandboxed Clients & the listeners attached to them"""

  config: ControllerConfig = field(default_factory=ControllerConfig.factory)
  registry: ClientRegistry = field(default_factory=ClientRegistry)
  queue: ListenerQueue | None = None
  _: KW_ONLY
  tracker: dict[str, dict[str, revoke_t]] = field(default_factory=dict)
  """The unsubscribe tracker: { client_id: { listener_id: revoke } }"""
  _ctx: _ControllerCtx = field(default_factory=lambda: { 'status': 'idle' })

  def __post_init__(self):
    ControllerConfig.validate(self.config)
    if self.queue is None: self.queue = ListenerQueue(pending_warn_limit=self.config['pending_warn_limit'])

  ### Observability ###

  @property
  def status(self) -> status_t: return self._ctx['status']

  @property
  def clients(self) -> set[str]:
    """The IDs of the currently registered Clients"""
    return self.registry.list()

  def listener_count(self, client_id: str) -> int:
    """The caller visible number of listeners on a Client's channel"""
    client = self.registry.get(client_id)
    if client is None: raise KeyError(client_id)
    return client.channel.listener_count

  def pending_global(self) -> dict[str, listener_t]:
    return dict(self.queue.global_listeners)

  def pending_for(self, client_id: str) -> dict[str, listener_t]:
    return dict(self.queue.per_client.get(client_id, {}))

  def tracked(self, client_id: str) -> dict[str, revoke_t]:
    """The attachments that will be revoked when the Client is unregistered"""
    return dict(self.tracker.get(client_id, {}))

  ### Listeners ###

  def add_listener(self, listener: listener_t, client_id: str | None = None) -> Subscription:
    """Attach a listener to a single Client, or to every Client present & future when no Client ID is given."""
    self._assert_open()
    listener_id = generate_id('listener')
    if client_id is None:
      for client in list(self.registry.clients.values()): self._attach(client, listener_id, listener)
      self.queue.enqueue_global(listener, listener_id=listener_id)
      logger.debug(f"Listener {listener_id} is standing on {len(self.registry)} Clients")
      return Subscription(self, GLOBAL, listener_id)

    client = self.registry.get(client_id)
    if client is not None:
      self._attach(client, listener_id, listener)
      logger.debug(f"Listener {listener_id} attached to Client {client_id}")
    else:
      self.queue.enqueue_per_client(client_id, listener, listener_id=listener_id)
      logger.debug(f"Listener {listener_id} queued until Client {client_id} is registered")
    return Subscription(self, client_id, listener_id)

  def _attach(self, client: Client, listener_id: str, listener: listener_t) -> None:
    channel_listener_id = client.channel.subscribe(listener)
    self.tracker.setdefault(client.id, {})[listener_id] = functools.partial(client.channel.unsubscribe, channel_listener_id)

  def _revoke(self, sub: Subscription) -> None:
    scope = self.registry.list() if sub.scope == GLOBAL else (sub.scope, )
    for client_id in scope:
      revoke = self.tracker.get(client_id, {}).pop(sub.listener_id, None)
      if revoke is not None: revoke()
    self.queue.dequeue(sub.listener_id)
    logger.trace(f"Listener {sub.listener_id} revoked")

  def _is_live(self, sub: Subscription) -> bool:
    if sub.listener_id in self.queue: return True
    scope = self.registry.list() if sub.scope == GLOBAL else (sub.scope, )
    return any(sub.listener_id in self.tracker.get(client_id, {}) for client_id in scope)

  ### Clients ###

  def register_client(self, target: Transport, client_id: str) -> Error | NO_ERROR_T:
    """Register a new Client, flushing every listener queued for it."""
    self._assert_open()
    try: client = self.registry.create(client_id, target)
    except DuplicateClient as e:
      logger.warning(str(e))
      return { 'kind': 'duplicate-client', 'message': str(e) }
    self.tracker[client_id] = {}
    queued = self.queue.drain_per_client(client_id)
    for listener_id, listener in queued: self._attach(client, listener_id, listener)
    standing = self.queue.snapshot_global()
    for listener_id, listener in standing: self._attach(client, listener_id, listener)
    logger.debug(f"Client {client_id} registered; flushed {len(queued)} queued & {len(standing)} standing listeners")
    if self.status == 'running' and 'request' in self._ctx:
      logger.trace(f"Controller is running; sending the last request to Client {client_id}")
      client.channel.send(Message.factory(MessageKind.COMPILE, self._ctx['request']))
    return NO_ERROR

  def unregister_client(self, client_id: str) -> Error | NO_ERROR_T:
    """Revoke everything attached to a Client & then remove it; other Clients & the queues are untouched."""
    if client_id not in self.registry:
      logger.trace(f"Client {client_id} is not registered; nothing to unregister")
      return NO_ERROR
    revokes = self.tracker.pop(client_id, {})
    for revoke in list(revokes.values()): revoke()
    self.registry.remove(client_id)
    logger.debug(f"Client {client_id} unregistered; revoked {len(revokes)} listeners")
    return NO_ERROR

  async def wait_ready(self, client_id: str, timeout: float | None = None) -> Error | NO_ERROR_T:
    """Wait for the Client's handshake; without a timeout the configured handshake timeout applies"""
    client = self.registry.get(client_id)
    if client is None: return { 'kind': 'missing', 'message': f"Client `{client_id}` is not registered" }
    if timeout is None: timeout = self.config['handshake_timeout']
    err = await client.channel.wait(timeout)
    if err is not NO_ERROR: logger.warning(f"Client {client_id}: {Error.render(err)}")
    return err

  ### Messaging ###

  def run(self, request: OBJ | None = None) -> None:
    """Broadcast a compile request to every registered Client"""
    self._assert_open()
    if request is not None: self._ctx['request'] = request
    else: request = self._ctx.setdefault('request', {})
    self._ctx['status'] = 'running'
    logger.debug(f"Running {len(self.registry)} Clients")
    self._broadcast(MessageKind.COMPILE, request)

  def dispatch(self, kind: str, payload: OBJ | None = None, client_id: str | None = None) -> Error | NO_ERROR_T:
    """Send a message to a single Client or, when no Client ID is given, to all of them"""
    self._assert_open()
    if client_id is None:
      self._broadcast(kind, payload)
      return NO_ERROR
    client = self.registry.get(client_id)
    if client is None: return { 'kind': 'missing', 'message': f"Client `{client_id}` is not registered" }
    return client.channel.send(Message.factory(kind, payload))

  def _broadcast(self, kind: str, payload: Any) -> None:
    for client in list(self.registry.clients.values()):
      err = client.channel.send(Message.factory(kind, payload))
      if err is not NO_ERROR: logger.warning(f"Client {client.id}: {Error.render(err)}")

  ### Teardown ###

  def close(self) -> None:
    """Unregister every Client & drop every queued listener"""
    if self.status == 'closed': return
    for client_id in sorted(self.registry.list()): self.unregister_client(client_id)
    self.queue.clear()
    self._ctx.pop('request', None)
    self._ctx['status'] = 'closed'
    logger.debug("Controller closed")

  def _assert_open(self):
    if self.status == 'closed': raise RuntimeError("the Controller was closed")
