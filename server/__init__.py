"""HTTP and WebSocket API for the Kvinti engine."""
