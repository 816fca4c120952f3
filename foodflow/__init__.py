"""Food ordering and delivery workflow service."""
