"""pveprov - provision and configure customer VMs on a Proxmox VE node."""

__version__ = "0.4.0"
