# Overview: Relays sales/product summaries to the external forecast and promotion services.

"""
Insights relay

The forecast and promotion generators are external services. This module
only assembles the input summary, POSTs it, checks that the reply has the
expected shape and maps upstream failures to UpstreamServiceError:

- 429 -> 429 "Rate limit exceeded. Please try again later."
- 402 -> 402 "Payment required. Please add credits to your workspace."
- anything else (non-2xx, transport error, bad JSON, missing keys,
  unconfigured URL) -> 500 with a generic message
"""

from __future__ import annotations

from datetime import timedelta

import httpx
from flask import current_app

from ..extensions import db
from ..models import Product, Sale
from stockroom.time_utils import today, to_iso_date


SALES_WINDOW_DAYS = 90

FORECAST_KEYS = ("dailyForecast", "weeklyForecast", "monthlyForecast")
PROMOTION_KEYS = ("recommendations", "summary")


class UpstreamServiceError(Exception):
    """Raised when an external insights service fails or is unavailable."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _sales_summary(days: int = SALES_WINDOW_DAYS) -> list[dict]:
    since = today() - timedelta(days=days)
    rows = (
        db.session.query(Sale.date_sold, Sale.quantity, Sale.total_amount_cents, Product.name)
        .outerjoin(Product, Product.id == Sale.product_id)
        .filter(Sale.date_sold >= since)
        .order_by(Sale.date_sold.asc(), Sale.id.asc())
        .all()
    )
    return [
        {
            "date": to_iso_date(row.date_sold),
            "product": row.name or "Unknown",
            "quantity": row.quantity,
            "amount_cents": row.total_amount_cents,
        }
        for row in rows
    ]


def _product_summary() -> list[dict]:
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "quantity": p.quantity,
            "reorder_level": p.reorder_level,
            "cost_price_cents": p.cost_price_cents,
            "retail_price_cents": p.retail_price_cents,
        }
        for p in products
    ]


def _make_client() -> httpx.Client:
    return httpx.Client(timeout=current_app.config.get("INSIGHTS_TIMEOUT_SECONDS", 30))


def _post(url_key: str, body: dict, *, client: httpx.Client | None = None) -> dict:
    url = current_app.config.get(url_key)
    if not url:
        current_app.logger.error("%s is not configured", url_key)
        raise UpstreamServiceError("Insights service is not configured", 500)

    headers = {"Content-Type": "application/json"}
    api_key = current_app.config.get("INSIGHTS_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    owns_client = client is None
    if owns_client:
        client = _make_client()
    try:
        response = client.post(url, json=body, headers=headers)
    except httpx.HTTPError as e:
        current_app.logger.error("Insights request to %s failed: %s", url, e)
        raise UpstreamServiceError("Insights service unavailable", 500) from e
    finally:
        if owns_client:
            client.close()

    if response.status_code == 429:
        raise UpstreamServiceError("Rate limit exceeded. Please try again later.", 429)
    if response.status_code == 402:
        raise UpstreamServiceError("Payment required. Please add credits to your workspace.", 402)
    if response.is_error:
        current_app.logger.error("Insights service error %s: %s", response.status_code, response.text[:500])
        raise UpstreamServiceError("Insights service error", 500)

    try:
        data = response.json()
    except ValueError as e:
        current_app.logger.error("Insights service returned invalid JSON: %s", response.text[:500])
        raise UpstreamServiceError("Insights service returned an invalid response", 500) from e

    if not isinstance(data, dict):
        raise UpstreamServiceError("Insights service returned an invalid response", 500)
    if "error" in data and isinstance(data["error"], str):
        current_app.logger.error("Insights service reported: %s", data["error"])
        raise UpstreamServiceError("Insights service error", 500)
    return data


def generate_forecast(*, client: httpx.Client | None = None) -> dict:
    """
    Forecast {dailyForecast, weeklyForecast, monthlyForecast, insights}
    from the last 90 days of sales.
    """
    data = _post("INSIGHTS_FORECAST_URL", {"sales": _sales_summary()}, client=client)
    missing = [k for k in FORECAST_KEYS if not isinstance(data.get(k), list)]
    if missing:
        current_app.logger.error("Forecast response missing keys: %s", ", ".join(missing))
        raise UpstreamServiceError("Failed to parse forecast data", 500)
    return {
        "dailyForecast": data["dailyForecast"],
        "weeklyForecast": data["weeklyForecast"],
        "monthlyForecast": data["monthlyForecast"],
        "insights": data.get("insights", []),
    }


def generate_promotion(*, context: dict | None = None, client: httpx.Client | None = None) -> dict:
    """Promotion plan {recommendations[], summary} for the current catalog."""
    body = {
        "products": _product_summary(),
        "sales": _sales_summary(),
        "context": context or {},
    }
    data = _post("INSIGHTS_PROMOTION_URL", body, client=client)
    missing = [k for k in PROMOTION_KEYS if k not in data]
    if missing or not isinstance(data["recommendations"], list):
        current_app.logger.error("Promotion response missing recommendations/summary")
        raise UpstreamServiceError("Failed to parse promotion data", 500)
    return {"recommendations": data["recommendations"], "summary": data["summary"]}
