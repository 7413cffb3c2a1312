"""Application services for the Educademy write and read paths."""
