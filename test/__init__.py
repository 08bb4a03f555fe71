from sandlink.testing import test_registry

from .tests.channel import (
  test_channel_subscriptions, test_channel_dispatch,
  test_channel_handshake, test_channel_close,
  test_channel_outbox_keeps_latest_request,
)
from .tests.registry import (
  test_registry_lifecycle,
)
from .tests.queue import (
  test_queue_global, test_queue_per_client, test_queue_pending_warning,
)
from .tests.controller import (
  test_queued_listener_before_client, test_standing_listener_before_client,
  test_listener_on_existing_client, test_standing_listener_on_existing_client,
  test_per_client_listener_waits_for_its_client, test_standing_listener_spans_clients,
  test_global_unsubscribe_scope, test_unregister_isolates_clients,
  test_unsubscribe_after_teardown, test_duplicate_client,
  test_run_and_dispatch, test_close,
  test_reentrant_teardown_during_delivery,
)
from .tests.loopback import (
  test_message_log, test_loopback_session,
  test_loopback_survives_responder_failure, test_loopback_bind_requires_running_loop,
)
from .tests.config import (
  test_config_defaults, test_config_sources, test_config_validation,
)

test_registry.register("sandlink.channel", "MessageChannel.subscriptions", test_channel_subscriptions)
test_registry.register("sandlink.channel", "MessageChannel.dispatch", test_channel_dispatch)
test_registry.register("sandlink.channel", "MessageChannel.handshake", test_channel_handshake)
test_registry.register("sandlink.channel", "MessageChannel.close", test_channel_close)
test_registry.register("sandlink.registry", "ClientRegistry.lifecycle", test_registry_lifecycle)
test_registry.register("sandlink.queue", "ListenerQueue.global", test_queue_global)
test_registry.register("sandlink.queue", "ListenerQueue.per_client", test_queue_per_client)
test_registry.register("sandlink.queue", "ListenerQueue.pending_warning", test_queue_pending_warning)
test_registry.register("sandlink.controller", "queued_listener_before_client", test_queued_listener_before_client)
test_registry.register("sandlink.controller", "standing_listener_before_client", test_standing_listener_before_client)
test_registry.register("sandlink.controller", "listener_on_existing_client", test_listener_on_existing_client)
test_registry.register("sandlink.controller", "standing_listener_on_existing_client", test_standing_listener_on_existing_client)
test_registry.register("sandlink.controller", "per_client_listener_waits_for_its_client", test_per_client_listener_waits_for_its_client)
test_registry.register("sandlink.controller", "standing_listener_spans_clients", test_standing_listener_spans_clients)
test_registry.register("sandlink.controller", "global_unsubscribe_scope", test_global_unsubscribe_scope)
test_registry.register("sandlink.controller", "unregister_isolates_clients", test_unregister_isolates_clients)
test_registry.register("sandlink.controller", "unsubscribe_after_teardown", test_unsubscribe_after_teardown)
test_registry.register("sandlink.controller", "duplicate_client", test_duplicate_client)
test_registry.register("sandlink.controller", "run_and_dispatch", test_run_and_dispatch)
test_registry.register("sandlink.controller", "close", test_close)
test_registry.register("sandlink.backends.local", "MessageLog", test_message_log)
test_registry.register("sandlink.backends.local", "LoopbackTransport.session", test_loopback_session)
test_registry.register("sandlink.config", "defaults", test_config_defaults)
test_registry.register("sandlink.config", "sources", test_config_sources)
test_registry.register("sandlink.config", "validation", test_config_validation)
test_registry.register("sandlink.channel", "MessageChannel.outbox", test_channel_outbox_keeps_latest_request)
test_registry.register("sandlink.controller", "reentrant_teardown_during_delivery", test_reentrant_teardown_during_delivery)
test_registry.register("sandlink.backends.local", "LoopbackTransport.responder_failure", test_loopback_survives_responder_failure)
test_registry.register("sandlink.backends.local", "LoopbackTransport.bind_without_loop", test_loopback_bind_requires_running_loop)
