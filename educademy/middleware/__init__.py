"""HTTP middleware for the Educademy server."""
