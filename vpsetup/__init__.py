"""vps-setup — provision and harden a fresh Ubuntu server."""

__version__ = "0.1.0"
