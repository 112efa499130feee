"""switchboard: agent selection and workflow dispatch engine."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("switchboard")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
