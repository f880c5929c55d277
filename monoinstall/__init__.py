"""monoinstall — shared dependency installs for multi-project repositories."""

__version__ = "0.1.0"
