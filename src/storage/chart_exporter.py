# src/storage/chart_exporter.py

"""Generate interactive Plotly HTML charts for histories and comparisons."""

import importlib
import logging
import webbrowser
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from src.config.settings import Settings
from src.models.comparison import ComparisonResult, PriceHistory
from src.models.observation import Availability

logger = logging.getLogger("price_intel.chart")

_CHARTS_DIR: Path = Settings.CHARTS_DIR


def _get_plotly_go() -> ModuleType:
    """Import plotly.graph_objects lazily."""
    return importlib.import_module("plotly.graph_objects")


def _ensure_charts_dir() -> Path:
    """Create charts directory if it doesn't exist."""
    _CHARTS_DIR.mkdir(parents=True, exist_ok=True)
    return _CHARTS_DIR


def _write(fig: Any, name: str, open_browser: bool) -> Path:
    charts_dir = _ensure_charts_dir()
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filepath = charts_dir / f"{name}_{stamp}.html"
    fig.write_html(str(filepath))
    logger.info("Chart saved to %s", filepath)

    if open_browser:
        webbrowser.open(filepath.as_uri())
    return filepath


def build_history_figure(history: PriceHistory) -> Any:
    """Line chart of one listing's prices with min/max annotations."""
    go = _get_plotly_go()
    points = [o for o in history.history if o.selling_price is not None]
    dates = [o.captured_at for o in points]
    prices = [float(o.selling_price or 0) for o in points]

    fig: Any = go.Figure()
    fig.add_trace(go.Scatter(
        x=dates,
        y=prices,
        mode="lines+markers",
        name=f"Listing {history.listing_id}",
        hovertemplate=(
            "%{x|%Y-%m-%d %H:%M}<br>"
            "Price: %{y:.2f}"
            "<extra></extra>"
        ),
    ))

    min_idx = prices.index(min(prices))
    max_idx = prices.index(max(prices))
    fig.add_annotation(
        x=dates[min_idx], y=prices[min_idx],
        text=f"Min: {prices[min_idx]:.2f}",
        showarrow=True, arrowhead=2,
    )
    fig.add_annotation(
        x=dates[max_idx], y=prices[max_idx],
        text=f"Max: {prices[max_idx]:.2f}",
        showarrow=True, arrowhead=2,
    )

    fig.update_layout(
        title=f"Price History: listing {history.listing_id}",
        xaxis_title="Captured at (UTC)",
        yaxis_title="Selling price",
        hovermode="x unified",
        template="plotly_white",
    )
    return fig


def export_history_chart(
    history: PriceHistory,
    open_browser: bool = True,
) -> Path | None:
    """Export a listing's price history as HTML."""
    priced = [o for o in history.history if o.selling_price is not None]
    if len(priced) < 2:
        logger.warning(
            "Not enough data points for chart: listing %d",
            history.listing_id,
        )
        return None

    fig = build_history_figure(history)
    return _write(fig, f"listing_{history.listing_id}", open_browser)


def export_comparison_chart(
    result: ComparisonResult,
    open_browser: bool = True,
) -> Path | None:
    """Export a bar chart of compared listings in output order."""
    if not result.results:
        logger.warning("No items to chart for comparison")
        return None

    go = _get_plotly_go()
    labels = [
        f"#{item.rank} listing {item.listing_id}"
        for item in result.results
    ]
    colors = [
        "seagreen" if item.availability is Availability.IN_STOCK else "lightgray"
        for item in result.results
    ]
    fig: Any = go.Figure()
    fig.add_trace(go.Bar(
        x=labels,
        y=[float(item.price) for item in result.results],
        marker_color=colors,
        hovertemplate="%{x}<br>Price: %{y:.2f}<extra></extra>",
    ))
    fig.update_layout(
        title=(
            f"Price Comparison (spread {result.price_spread}, "
            f"{result.percentage_difference}%)"
        ),
        xaxis_title="Listing",
        yaxis_title="Latest price",
        template="plotly_white",
    )
    return _write(fig, "comparison", open_browser)
