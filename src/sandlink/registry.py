"""Identity & ownership bookkeeping for Clients; no listener logic lives here."""
from __future__ import annotations
from dataclasses import dataclass, field
from loguru import logger

from .channel import MessageChannel, Transport
from .errors import DuplicateClient

@dataclass
class Client:
  id: str
  """The caller supplied Client ID"""
  channel: MessageChannel
  """The Client's Channel; shares the Client's lifetime"""
  target: Transport
  """The transport endpoint the Channel wraps"""

@dataclass
class ClientRegistry:
  clients: dict[str, Client] = field(default_factory=dict)
  """The currently registered Clients: { client_id: Client }"""

  def __contains__(self, client_id: str) -> bool: return client_id in self.clients

  def __len__(self) -> int: return len(self.clients)

  def create(self, client_id: str, target: Transport) -> Client:
    """Create a Client & its Channel"""
    if client_id in self.clients: raise DuplicateClient(client_id)
    self.clients[client_id] = Client(
      id=client_id,
      channel=MessageChannel(client_id, target),
      target=target,
    )
    logger.trace(f"Registry: created Client {client_id}")
    return self.clients[client_id]

  def get(self, client_id: str) -> Client | None:
    return self.clients.get(client_id)

  def remove(self, client_id: str) -> None:
    """Remove a Client closing its Channel; absent Clients are ignored"""
    client = self.clients.pop(client_id, None)
    if client is None: return
    client.channel.close()
    logger.trace(f"Registry: removed Client {client_id}")

  def list(self) -> set[str]:
    return set(self.clients.keys())
