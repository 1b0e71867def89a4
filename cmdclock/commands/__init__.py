"""typer command groups."""
