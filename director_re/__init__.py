"""director-re: Macromedia Director container, cast and score decoder."""

__version__ = "0.1.0"
