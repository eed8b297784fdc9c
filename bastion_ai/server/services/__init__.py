"""Runtime wiring and FastAPI dependencies."""
