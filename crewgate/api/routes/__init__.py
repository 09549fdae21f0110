"""Routes — one module per resource, registered explicitly in main.py."""
