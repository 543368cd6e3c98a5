from typing import Any, List, Optional, Tuple


NAMESPACE = '/ws'


def room_channel(code: str) -> str:
    return f"room:{code}"


class SocketEmitter:
    """Sends engine events to every socket joined to a room's channel."""

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, code: str, event: str, payload: Any = None, to: Optional[str] = None) -> None:
        self.socketio.emit(event, payload, to=to or room_channel(code), namespace=self.namespace)


class RecordingEmitter:
    """Keeps emitted events in memory; used by tests and offline tooling."""

    def __init__(self):
        self.events: List[Tuple[str, str, Any]] = []

    def emit(self, code: str, event: str, payload: Any = None, to: Optional[str] = None) -> None:
        self.events.append((code, event, payload))

    def names(self) -> List[str]:
        return [name for _, name, _ in self.events]

    def payloads(self, event: str) -> List[Any]:
        return [payload for _, name, payload in self.events if name == event]
