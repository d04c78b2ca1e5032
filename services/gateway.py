import secrets
import time
from dataclasses import dataclass
from typing import Optional


class PaymentGatewayError(RuntimeError):
    pass


@dataclass(frozen=True)
class GatewayResult:
    success: bool
    reference: Optional[str] = None
    message: str = ""


class SimulatedGateway:
    """
    Stand-in for the wallet / bank providers. Every charge is approved on the
    spot and gets a provider-style reference number.
    """

    PREFIXES = {
        "gopay": "GP",
        "dana": "DA",
        "bank_transfer": "BT",
    }

    def charge(self, payment, method: str) -> GatewayResult:
        prefix = self.PREFIXES.get(method)
        if prefix is None:
            raise PaymentGatewayError(f"Unsupported payment method: {method}")

        reference = f"{prefix}{int(time.time())}{1000 + secrets.randbelow(9000)}"
        if method == "bank_transfer":
            message = "Bank transfer instructions sent. Please complete the transfer within 24 hours."
        else:
            message = "Payment processed successfully"
        return GatewayResult(success=True, reference=reference, message=message)
