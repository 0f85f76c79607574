from paygate.routing.registry import GatewayRegistry

__all__ = ["GatewayRegistry"]
