from __future__ import annotations


def free_service_due(service_count: int, threshold: int = 10) -> bool:
    """Every ``threshold``-th offer service is free; the counter itself never resets."""
    return service_count > 0 and service_count % threshold == 0


def loyalty_label(service_count: int, threshold: int = 10) -> str:
    if free_service_due(service_count, threshold):
        return "Free"
    return f"{service_count % threshold}/{threshold}"
