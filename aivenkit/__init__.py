"""Helpers for managing Aiven resources: user config, service waiting, Kafka caches and VPC peering."""

__version__ = "0.1.0"

__all__ = ["cache", "schema", "service_change", "templates", "user_config", "vpc_peering"]