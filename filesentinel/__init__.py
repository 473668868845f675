"""filesentinel — audit installed npm dependencies for publish-file whitelists."""

__version__ = "0.1.0"
