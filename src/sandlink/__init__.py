"""

# sandlink

Bridges a host process to sandboxed Clients, each reachable through an asynchronous message Channel, & manages
which listeners are attached to which Client across the Clients' lifecycles.

```python
controller = Controller()
unsubscribe = controller.add_listener(on_message)            # every Client, present & future
controller.add_listener(on_preview, client_id='preview')    # waits until `preview` is registered
controller.register_client(LoopbackTransport(), 'preview')
controller.run({'files': {...}})
...
unsubscribe()
controller.close()
```

"""
from .errors import Error, NO_ERROR, NO_ERROR_T, DuplicateClient, ConfigError
from .messages import Message, MessageKind, generate_id
from .channel import MessageChannel, Transport, HANDSHAKE_LISTENER_ID
from .registry import Client, ClientRegistry
from .queue import ListenerQueue
from .config import ControllerConfig, load_config
from .controller import Controller, Subscription, GLOBAL
