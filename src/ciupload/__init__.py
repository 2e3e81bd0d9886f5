"""ciupload - upload CI build artifacts to GitHub and GitLab releases."""

__version__ = "0.4.0"
