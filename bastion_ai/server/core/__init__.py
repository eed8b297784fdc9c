"""Gateway settings, constants, database wiring and credential checks."""
