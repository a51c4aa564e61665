"""kitlock: resolve, lock and extract OCI-distributed kit images."""

__version__ = "0.1.0"
