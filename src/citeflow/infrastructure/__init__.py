"""Infrastructure adapters: HTTP clients, providers, resolvers, documents, settings."""
