"""REST and WebSocket endpoints for the Educademy server."""
