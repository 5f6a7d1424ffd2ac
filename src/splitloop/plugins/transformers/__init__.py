"""Built-in transformers. Modules here are scanned by plugins.discovery."""
