"""releasegraph: version lifecycle orchestration for multi-module git repositories."""

__version__ = "0.1.0"
