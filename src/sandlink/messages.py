"""

# Messages

JSON framed messages exchanged between the host & a sandboxed client.

"""
from __future__ import annotations
import time, itertools, orjson
from typing import TypeVar, Generic, TypedDict, NotRequired, Any

OBJ = TypeVar('OBJ', bound=dict)

_seq = itertools.count(1)
def generate_id(prefix: str) -> str:
  """A process unique identifier; the sequence breaks ties within the same clock tick"""
  return f"{prefix}-{time.monotonic_ns():x}-{next(_seq):x}"

class MessageKind:
  """Message Kinds understood by this core; hosts may send any other kind."""
  INITIALIZED = 'initialized'
  """Sent by the sandbox once it is ready to receive messages"""
  COMPILE = 'compile'
  """The run request broadcast to every client"""

class Message(Generic[OBJ], TypedDict):
  """A Datastructure representing an `inflight` payload."""
  metadata: Message.Metadata
  """Metadata associated w/ a Message"""
  payload: OBJ
  """A JSON Encodable dict of arbitrary content"""
  class Metadata(TypedDict):
    id: str
    """A Unique Identifier for the Message"""
    kind: str
    """What the Message is; see `MessageKind`"""
    channel: NotRequired[str]
    """The Channel (ie. Client ID) the Message was sent on"""
    sender: NotRequired[str]
    """Who originally sent the message"""
    timestamp: int
    """Monotonic timestamp of when the message was created"""

  @staticmethod
  def factory(
    kind: str,
    payload: OBJ | None = None,
    **kwargs,
  ) -> Message[OBJ]:
    now = time.monotonic_ns()
    metadata = { 'id': generate_id('msg'), 'kind': kind, 'timestamp': now } | kwargs
    return { 'metadata': metadata, 'payload': payload or {} }

  @staticmethod
  def kind(msg: Message[Any]) -> str: return msg['metadata']['kind']

  @staticmethod
  def marshal(msg: Message[OBJ], opts: int = 0) -> bytes:
    return orjson.dumps(msg, option=opts)

  @staticmethod
  def unmarshal(data: bytes) -> Message[OBJ]:
    msg = orjson.loads(data)
    if not isinstance(msg, dict) or 'metadata' not in msg or 'kind' not in msg['metadata']: raise ValueError("frame is not a Message")
    msg.setdefault('payload', {})
    return msg
