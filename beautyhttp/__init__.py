"""HTTP and WebSocket server and client with routing, timers and signals."""

__version__ = "0.1.0"