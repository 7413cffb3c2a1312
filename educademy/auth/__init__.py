"""Access-token handling for Educademy."""
