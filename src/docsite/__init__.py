"""docsite: REST data-access layer (users, posts) for the documentation site."""
