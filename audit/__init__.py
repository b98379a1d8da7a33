"""Post-hoc consistency checks over rate model output."""
