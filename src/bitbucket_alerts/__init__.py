"""Desktop alerts for Bitbucket pull request and pipeline state changes."""

__version__ = "0.1.0"
