"""FastAPI application assembly for the Educademy server."""
