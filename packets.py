from typing import List, Optional

REQUEST = "REQUEST"
RESPONSE = "RESPONSE"

QUEUED = "QUEUED"
TRANSIT = "TRANSIT"
DELIVERED = "DELIVERED"

# Before routing, a request (~1 KB) moves 40x faster than a video chunk (~1 MB)
INITIAL_SPEED = {REQUEST: 0.2, RESPONSE: 0.005}


class Packet:
    """A request for one video chunk, or the response carrying it back."""

    def __init__(self, packet_id: str, packet_type: str, source: str, target: str,
                 video_id: str, chunk_index: int, is_last_chunk: bool = False, request_tick: int = 0):
        self.id: str = packet_id
        self.type: str = packet_type
        self.status: str = QUEUED

        # Node ids; the engine resolves them against the current topology
        self.source: str = source
        self.target: str = target

        self.path: List[str] = []
        self.current_step_index: int = 0
        self.progress: float = 0.0
        self.speed: float = INITIAL_SPEED[packet_type]

        self.video_id: str = video_id
        self.chunk_index: int = chunk_index
        self.is_last_chunk: bool = is_last_chunk

        # Tick the originating request was created, carried onto its response
        self.request_tick: int = request_tick
        self.served_by: Optional[str] = None
        self.failed: bool = False
        self.failure_reason: Optional[str] = None

    def __repr__(self):
        return f"Packet({self.id}, {self.type}, {self.status})"

    @property
    def current_node(self) -> Optional[str]:
        if not self.path:
            return None
        return self.path[min(self.current_step_index, len(self.path) - 1)]

    @property
    def next_node(self) -> Optional[str]:
        if self.current_step_index + 1 >= len(self.path):
            return None
        return self.path[self.current_step_index + 1]

