"""Platform audio backends."""
