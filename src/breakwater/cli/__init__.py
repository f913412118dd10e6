"""breakwater command-line interface (Typer)."""
