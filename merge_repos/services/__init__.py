"""Services for merge-repos."""
