"""Headless core: query state, filtering, cache, kanban engine, dialogs."""
