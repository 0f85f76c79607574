from paygate.gateways.base import GatewayConfig, PaymentGateway, PaymentRequest
from paygate.gateways.bizao import BizaoGateway
from paygate.gateways.cinetpay import CinetpayGateway
from paygate.gateways.winipayer import WinipayerGateway

GATEWAY_CLASSES: dict[str, type[PaymentGateway]] = {
    "cinetpay": CinetpayGateway,
    "bizao": BizaoGateway,
    "winipayer": WinipayerGateway,
}

__all__ = [
    "GATEWAY_CLASSES",
    "BizaoGateway",
    "CinetpayGateway",
    "GatewayConfig",
    "PaymentGateway",
    "PaymentRequest",
    "WinipayerGateway",
]
