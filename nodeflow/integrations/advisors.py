"""Strategy advisors that turn market inputs into a BUY/SELL signal."""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from ..core.exceptions import NodeExecutionError
from ..core.logging import get_logger
from ..models.configs import StrategyConfig
from .http import HttpTransport

logger = get_logger(__name__)

BUY = "BUY"
SELL = "SELL"

PRICE_KEYS = ("close", "price", "value", "equity")

PROVIDER_BASE_URLS: Dict[str, str] = {
    "deepseek": "https://api.deepseek.com/v1",
    "openai": "https://api.openai.com/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai",
    "anthropic": "https://api.anthropic.com/v1",
}

_SIGNAL_RE = re.compile(r"\b(BUY|SELL)\b", re.IGNORECASE)
_CONFIDENCE_RE = re.compile(r"(\d{1,3}(?:\.\d+)?)\s*%")


@dataclass
class Advice:
    signal: str
    confidence: float
    response: str


class StrategyAdvisor(Protocol):
    async def advise(self, config: StrategyConfig, prompt: str, inputs: List[Any]) -> Advice:
        ...


def extract_prices(inputs: List[Any]) -> List[float]:
    """Numeric series found in node inputs, in input order.

    Accepts bare numbers, dicts carrying one of PRICE_KEYS, and query-style
    outputs that wrap their rows in a ``data`` list.
    """
    prices: List[float] = []
    for item in inputs:
        if isinstance(item, bool):
            continue
        if isinstance(item, (int, float)):
            prices.append(float(item))
        elif isinstance(item, dict):
            if isinstance(item.get("data"), list):
                prices.extend(extract_prices(item["data"]))
                continue
            for key in PRICE_KEYS:
                value = item.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    prices.append(float(value))
                    break
    return prices


class MovingAverageAdvisor:
    """Fast/slow moving-average crossover evaluated locally."""

    async def advise(self, config: StrategyConfig, prompt: str, inputs: List[Any]) -> Advice:
        prices = extract_prices(inputs)
        if not prices:
            return Advice(SELL, 0.5, "Insufficient market data; staying flat. Recommended action: SELL.")

        fast = _mean(prices[-config.fast_ma:])
        slow = _mean(prices[-config.slow_ma:])
        signal = BUY if fast >= slow else SELL
        spread = abs(fast - slow) / abs(slow) if slow else 0.0
        confidence = round(min(0.99, 0.5 + spread), 2)
        trend = "bullish" if signal == BUY else "bearish"
        response = (
            f"MA({config.fast_ma})={fast:.4f} vs MA({config.slow_ma})={slow:.4f}: "
            f"the trend appears {trend} with a confidence of {confidence:.0%}. "
            f"Recommended action: {signal}."
        )
        return Advice(signal, confidence, response)


class ChatCompletionAdvisor:
    """Asks an OpenAI-compatible chat completion endpoint for a signal."""

    def __init__(self, transport: HttpTransport, base_urls: Optional[Dict[str, str]] = None):
        self.transport = transport
        self.base_urls = dict(PROVIDER_BASE_URLS)
        if base_urls:
            self.base_urls.update({key.lower(): value for key, value in base_urls.items()})

    def endpoint(self, config: StrategyConfig) -> str:
        base_url = config.base_url or self.base_urls.get(config.provider.lower())
        if not base_url:
            raise NodeExecutionError(f"No endpoint known for provider '{config.provider}'")
        return base_url.rstrip("/") + "/chat/completions"

    async def advise(self, config: StrategyConfig, prompt: str, inputs: List[Any]) -> Advice:
        messages = []
        if config.system_prompt:
            messages.append({"role": "system", "content": config.system_prompt})
        messages.append({
            "role": "user",
            "content": prompt + "\nAnswer with BUY or SELL and a confidence percentage.",
        })

        response = await self.transport.request(
            "POST",
            self.endpoint(config),
            headers={"Authorization": f"Bearer {config.api_key}", "Content-Type": "application/json"},
            body={"model": config.model, "temperature": config.temperature, "messages": messages},
        )
        if not response.ok:
            raise NodeExecutionError(f"{config.provider} API returned {response.status} {response.reason}")

        try:
            content = response.body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise NodeExecutionError(f"Unexpected {config.provider} response shape: {e}") from e

        return parse_advice(content)


def parse_advice(content: str) -> Advice:
    """Read the first BUY/SELL and the first percentage out of model text."""
    signal_match = _SIGNAL_RE.search(content)
    if not signal_match:
        raise NodeExecutionError("Model response contains no BUY or SELL signal")
    confidence_match = _CONFIDENCE_RE.search(content)
    confidence = float(confidence_match.group(1)) / 100 if confidence_match else 0.5
    return Advice(signal_match.group(1).upper(), round(min(confidence, 1.0), 2), content)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)
