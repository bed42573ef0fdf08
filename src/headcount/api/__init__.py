"""HTTP and WebSocket API for Headcount."""
