from typing import Dict

# USD per 1M tokens
# Values follow published Groq on-demand pricing; adjust as the provider changes them
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "groq/llama-3.3-70b-versatile": {
        "prompt": 0.59,
        "completion": 0.79,
    },
    "groq/llama-3.1-8b-instant": {
        "prompt": 0.05,
        "completion": 0.08,
    },
    "groq/mixtral-8x7b-32768": {
        "prompt": 0.24,
        "completion": 0.24,
    },
    # Fallback generic
    "default": {
        "prompt": 0.10,
        "completion": 0.10,
    },
}


def estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int, provider: str = "groq") -> float:
    """
    Calculate cost in USD based on model pricing.
    """
    pricing = MODEL_PRICING.get(f"{provider}/{model}") or MODEL_PRICING["default"]

    cost_prompt = (prompt_tokens / 1_000_000) * pricing["prompt"]
    cost_completion = (completion_tokens / 1_000_000) * pricing["completion"]

    return round(cost_prompt + cost_completion, 8)
