"""
Plotting module for visualizing order block zones on price charts.
"""
import matplotlib.pyplot as plt
import matplotlib.patches as patches

from .logger import get_logger
from .models import ZoneKind

logger = get_logger("plotter")

ZONE_STYLE = {
    ZoneKind.SUPPORT: {'face': 'lightgreen', 'edge': 'darkgreen'},
    ZoneKind.RESISTANCE: {'face': 'lightcoral', 'edge': 'darkred'},
}


def plot_with_zones(df, zones, symbol, timeframe, save_path=None):
    """
    Plot candlestick chart with order block zones highlighted.

    Each zone is drawn from its formation candle to the right edge of the
    chart. Breaker zones are drawn dashed and lighter.

    Args:
        df: pandas.DataFrame with OHLCV data
        zones: list of Zone
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "1h", "4h")
        save_path: Path to save the chart (optional)
    """
    fig, ax = plt.subplots(figsize=(14, 8))
    n = len(df)

    for i in range(n):
        row = df.iloc[i]
        color = 'green' if row['close'] >= row['open'] else 'red'

        ax.plot([i, i], [row['low'], row['high']], color='black', linewidth=0.5)

        body_height = abs(row['close'] - row['open'])
        body_bottom = min(row['open'], row['close'])
        rect = patches.Rectangle((i - 0.3, body_bottom), 0.6, body_height,
                                 linewidth=0.5, edgecolor='black',
                                 facecolor=color, alpha=0.7)
        ax.add_patch(rect)

    for zone in zones:
        style = ZONE_STYLE[zone.kind]
        start = zone.formation_index
        width = max(n - start, 1)
        score = zone.breakout_pattern.score if zone.breakout_pattern else 50

        # Alpha grows with breakout strength (0.15 to 0.45)
        alpha = 0.15 + (score / 100) * 0.3
        if zone.is_breaker:
            alpha /= 2

        zone_rect = patches.Rectangle((start - 0.5, zone.bottom), width,
                                      zone.top - zone.bottom,
                                      linewidth=1.5, edgecolor=style['edge'],
                                      linestyle='--' if zone.is_breaker else '-',
                                      facecolor=style['face'], alpha=alpha)
        ax.add_patch(zone_rect)

        label = f"{zone.balance_percent}%"
        if zone.breakout_pattern:
            label = f"{zone.breakout_pattern.tier} {label}"
        ax.text(start, zone.top, label, fontsize=7, ha='left', va='bottom',
                bbox=dict(boxstyle='round,pad=0.2', facecolor='white', alpha=0.7))

    ax.set_xlabel('Candle Index')
    ax.set_ylabel('Price')
    ax.set_title(f'{symbol} {timeframe} - Order Block Zones')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=100, bbox_inches='tight')
        logger.info(f"Chart saved to: {save_path}")
    else:
        plt.show()

    plt.close(fig)
