"""Command-line tools for inspecting propagated trace contexts."""
