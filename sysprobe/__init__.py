"""Read CPU, memory, battery, network, drive and link state from Linux sysfs and procfs."""

__version__ = "1.8.0"

__all__ = ["battery", "cpu", "drive", "link", "memory", "network", "sysfs"]