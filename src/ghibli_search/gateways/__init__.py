"""Stateless forwarders between the HTTP surface and the managed backends."""
