"""Single-site crawler that maps pages, links, and static assets."""

__version__ = "0.1.0"
