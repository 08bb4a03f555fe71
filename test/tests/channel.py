from __future__ import annotations
from loguru import logger
from sandlink.testing import TestResult, TestCode

__all__ = [
  'test_channel_subscriptions',
  'test_channel_dispatch',
  'test_channel_handshake',
  'test_channel_close',
  'test_channel_outbox_keeps_latest_request',
]

async def test_channel_subscriptions(*args, **kwargs) -> TestResult:
  from sandlink.channel import MessageChannel, HANDSHAKE_LISTENER_ID
  from .fakes import RecordingTransport

  try:
    logger.info("Testing Channel Subscriptions")
    channel = MessageChannel('client-id', RecordingTransport())
    assert list(channel.listeners.keys()) == [HANDSHAKE_LISTENER_ID], f"Expected only the handshake listener, got {list(channel.listeners)}"
    assert channel.listener_count == 0, f"Expected 0 caller visible listeners, got {channel.listener_count}"

    a = channel.subscribe(lambda msg: None)
    b = channel.subscribe(lambda msg: None)
    assert a != b, "Listener IDs must be unique"
    assert channel.listener_count == 2, f"Expected 2 listeners, got {channel.listener_count}"

    logger.debug("Unsubscribing is idempotent")
    channel.unsubscribe(a)
    channel.unsubscribe(a)
    channel.unsubscribe('listener-unknown')
    assert channel.listener_count == 1, f"Expected 1 listener, got {channel.listener_count}"
    assert b in channel.listeners

    logger.debug("The handshake listener can't be unsubscribed")
    channel.unsubscribe(HANDSHAKE_LISTENER_ID)
    channel.unsubscribe(HANDSHAKE_LISTENER_ID)
    assert HANDSHAKE_LISTENER_ID in channel.listeners, "The handshake listener must stay installed"
    assert channel.listener_count == 1, f"Expected 1 listener, got {channel.listener_count}"
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_channel_dispatch(*args, **kwargs) -> TestResult:
  from sandlink.channel import MessageChannel
  from sandlink.messages import Message
  from .fakes import RecordingTransport

  try:
    logger.info("Testing Channel Dispatch")
    transport = RecordingTransport()
    channel = MessageChannel('client-id', transport)
    calls: list[str] = []

    def first(msg): calls.append(f"first:{Message.kind(msg)}")
    def broken(msg): raise RuntimeError("listener failure")
    def revoker(msg):
      calls.append('revoker')
      channel.unsubscribe(last_id)
      channel.subscribe(lambda m: calls.append('late'))
    def last(msg): calls.append('last')

    channel.subscribe(first)
    channel.subscribe(broken)
    channel.subscribe(revoker)
    last_id = channel.subscribe(last)

    logger.debug("Delivering a message through the transport")
    transport.deliver('status', {'state': 'idle'})
    assert calls == ['first:status', 'revoker'], f"Unexpected delivery order {calls}"
    assert channel.listener_count == 4, f"Expected 4 listeners, got {channel.listener_count}"

    logger.debug("Listeners added during delivery see the next message")
    calls.clear()
    channel.dispatch(Message.factory('status'))
    assert calls[0] == 'first:status' and 'late' in calls, f"Unexpected delivery {calls}"

    logger.debug("Malformed frames are discarded")
    calls.clear()
    transport.rx(b'not json')
    transport.rx(b'{"payload": {}}')
    assert calls == [], f"Malformed frames must not be delivered: {calls}"
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_channel_handshake(*args, **kwargs) -> TestResult:
  from sandlink.channel import MessageChannel
  from sandlink.errors import NO_ERROR
  from sandlink.messages import Message, MessageKind
  from .fakes import RecordingTransport

  try:
    logger.info("Testing Channel Handshake")
    transport = RecordingTransport()
    channel = MessageChannel('client-id', transport)
    seen: list[str] = []
    channel.subscribe(lambda msg: seen.append(Message.kind(msg)))

    err = channel.send(Message.factory(MessageKind.COMPILE, {'n': 1}))
    assert err is NO_ERROR, err
    err = channel.send(Message.factory('refresh'))
    assert err is NO_ERROR, err
    assert transport.posted == [], "Nothing may be posted before the handshake"
    assert not channel.connected

    logger.debug("Waiting on the handshake times out")
    err = await channel.wait(timeout=0.01)
    assert err is not NO_ERROR and err['kind'] == 'timeout', err

    transport.handshake()
    assert channel.connected
    assert seen == [MessageKind.INITIALIZED], f"Callers also observe the handshake: {seen}"
    assert transport.kinds() == [MessageKind.COMPILE, 'refresh'], f"Outbox must flush in order: {transport.kinds()}"
    assert all(m['metadata']['channel'] == 'client-id' for m in transport.posted)
    assert transport.posted[0]['payload'] == {'n': 1}

    err = await channel.wait(timeout=0.01)
    assert err is NO_ERROR, err

    logger.debug("A repeated handshake doesn't resend anything")
    transport.handshake()
    assert len(transport.posted) == 2

    channel.send(Message.factory('refresh'))
    assert transport.kinds()[-1] == 'refresh' and len(transport.posted) == 3
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_channel_close(*args, **kwargs) -> TestResult:
  from sandlink.channel import MessageChannel
  from sandlink.errors import NO_ERROR
  from sandlink.messages import Message
  from .fakes import RecordingTransport

  try:
    logger.info("Testing Channel Close")
    transport = RecordingTransport()
    channel = MessageChannel('client-id', transport)
    seen: list[str] = []
    channel.subscribe(lambda msg: seen.append(Message.kind(msg)))
    channel.send(Message.factory('refresh'))

    channel.close()
    channel.close()
    assert channel.closed
    assert transport.unbound, "Closing must unbind the transport"
    err = channel.send(Message.factory('refresh'))
    assert err is not NO_ERROR and err['kind'] == 'closed', err
    channel.dispatch(Message.factory('status'))
    assert seen == [], f"A closed channel delivers nothing: {seen}"
    err = await channel.wait(timeout=0.01)
    assert err is not NO_ERROR and err['kind'] == 'closed', err
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)

async def test_channel_outbox_keeps_latest_request(*args, **kwargs) -> TestResult:
  from sandlink.channel import MessageChannel
  from sandlink.messages import Message, MessageKind
  from .fakes import RecordingTransport

  try:
    logger.info("Testing the pre-handshake Outbox")
    transport = RecordingTransport()
    channel = MessageChannel('client-id', transport)
    for n in range(1000): channel.send(Message.factory(MessageKind.COMPILE, {'n': n}))
    channel.send(Message.factory('refresh'))
    channel.send(Message.factory(MessageKind.COMPILE, {'n': 'latest'}))
    channel.send(Message.factory('refresh'))
    assert len(channel._ctx.outbox) == 3, f"Expected a single held compile request, got {len(channel._ctx.outbox)} held messages"

    transport.handshake()
    assert transport.kinds() == ['refresh', MessageKind.COMPILE, 'refresh'], transport.kinds()
    assert transport.posted[1]['payload'] == {'n': 'latest'}, transport.posted[1]['payload']
  except AssertionError as e: return TestResult(TestCode.FAIL, str(e))
  return TestResult(TestCode.PASS)
