"""crmdeck UI: Jinja2 + HTMX rendering of resource panels, served with FastAPI."""
