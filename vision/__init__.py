"""Computer vision components."""
