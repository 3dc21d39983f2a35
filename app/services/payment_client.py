import hashlib
import hmac
import time
import uuid
from dataclasses import dataclass
import requests

from app.exceptions.custom import GatewayTimeout, InvalidSignature, PaymentProcessorError

@dataclass
class PaymentProcessorConfig:
    api_base: str           # https://api.stripe.com or a compatible endpoint
    secret_key: str         # server-side API key, sent as Bearer token
    timeout: float = 10.0
    sandbox: bool = False   # return mock intents without calling the processor

def _flatten_form(data: dict, prefix: str = "") -> dict:
    # Processor expects nested params as metadata[booking_id]=...
    out = {}
    for k, v in data.items():
        key = f"{prefix}[{k}]" if prefix else k
        if isinstance(v, dict):
            out.update(_flatten_form(v, key))
        elif isinstance(v, bool):
            out[key] = "true" if v else "false"
        else:
            out[key] = str(v)
    return out

def _signature_parts(header: str) -> tuple[str | None, list[str]]:
    timestamp = None
    signatures = []
    for chunk in header.split(","):
        if "=" not in chunk:
            continue
        k, v = chunk.strip().split("=", 1)
        if k == "t":
            timestamp = v.strip()
        elif k == "v1":
            signatures.append(v.strip())
    return timestamp, signatures

def compute_signature(payload: bytes, timestamp: str, secret: str) -> str:
    signed = timestamp.encode("utf-8") + b"." + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()

def verify_webhook_signature(payload: bytes, header: str | None, secret: str, tolerance: int = 300, now: float | None = None) -> None:
    """Verify a ``t=<unix>,v1=<hex>`` signature header over ``<t>.<payload>``.

    Raises InvalidSignature on any failure, including a missing secret.
    """
    if not secret:
        raise InvalidSignature("Webhook secret is not configured")
    if not header:
        raise InvalidSignature("Missing signature header")
    timestamp, signatures = _signature_parts(header)
    if not timestamp or not signatures:
        raise InvalidSignature("Malformed signature header")
    try:
        ts = int(timestamp)
    except ValueError:
        raise InvalidSignature("Malformed signature timestamp")
    now = time.time() if now is None else now
    if tolerance and abs(now - ts) > tolerance:
        raise InvalidSignature("Signature timestamp outside tolerance")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, s) for s in signatures):
        raise InvalidSignature()

class PaymentProcessorClient:
    def __init__(self, cfg: PaymentProcessorConfig):
        self.cfg = cfg

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.cfg.secret_key}",
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.cfg.api_base.rstrip('/')}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                data=_flatten_form(payload) if payload else None,
                headers=self._headers(),
                timeout=self.cfg.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise GatewayTimeout(f"Payment processor unreachable: {e.__class__.__name__}") from e
        except requests.RequestException as e:
            raise PaymentProcessorError(f"Payment processor request failed: {e.__class__.__name__}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            err = data.get("error") if isinstance(data, dict) else None
            msg = (err or {}).get("message") if isinstance(err, dict) else None
            raise PaymentProcessorError(msg or f"HTTP {r.status_code}", upstream_status=r.status_code)
        return data

    def create_payment_intent(self, *, amount: int, currency: str, metadata: dict) -> dict:
        """Reserve ``amount`` minor units. Returns the processor's intent object (id, client_secret, status)."""
        if self.cfg.sandbox:
            intent_id = f"pi_sandbox_{uuid.uuid4().hex[:16]}"
            return {"id": intent_id, "client_secret": f"{intent_id}_secret", "status": "requires_payment_method",
                    "amount": amount, "currency": currency, "metadata": dict(metadata)}
        payload = {
            "amount": amount,
            "currency": currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        return self.request("POST", "/v1/payment_intents", payload)

    def retrieve_payment_intent(self, intent_id: str) -> dict:
        if self.cfg.sandbox:
            # Sandbox intents are treated as paid once the client reports back.
            return {"id": intent_id, "status": "succeeded", "metadata": {}}
        return self.request("GET", f"/v1/payment_intents/{intent_id}")
