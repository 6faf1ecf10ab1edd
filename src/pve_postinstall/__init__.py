"""
PVE-Postinstall: Post-installation setup for Proxmox VE hosts.

This package reconciles the APT repository configuration of a freshly
installed Proxmox VE host, suppresses the subscription nag, enables the
high-availability services and brings the system up to date.
"""

__version__ = "0.1.0"
