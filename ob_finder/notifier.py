"""
Notification module for order block zone alerts (Telegram and email).
Delivery is best effort: failures are logged and reported as False.
"""
import html
import smtplib
from email.message import EmailMessage

import pandas as pd
import requests

from . import config
from .logger import get_logger
from .models import Zone, ZoneKind

logger = get_logger("notifier")


def _fmt_time(ts):
    if ts is None:
        return "-"
    return pd.Timestamp(ts).strftime('%Y-%m-%d %H:%M')


def format_zone_subject(symbol, timeframe, zone: Zone):
    """Short one-line subject for an alert, e.g. 'New 4h Support zone: BTC/USDT'."""
    return f"New {timeframe} {zone.kind.value} zone: {symbol}"


def format_zone_message(symbol, timeframe, zone: Zone):
    """
    Format a zone alert for Telegram (HTML parse mode).

    Args:
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "1h", "4h")
        zone: Detected zone

    Returns:
        Formatted message string
    """
    if zone.kind is ZoneKind.SUPPORT:
        header = "🟢 Support Zone (Bullish OB)"
        footer = "Buy zone identified"
    else:
        header = "🔴 Resistance Zone (Bearish OB)"
        footer = "Sell zone identified"

    breaker_text = ""
    if zone.is_breaker:
        breaker_text = f"\n⚠️ Breaker: boundary crossed at {_fmt_time(zone.breach_time)}"

    pattern_text = ""
    pattern = zone.breakout_pattern
    if pattern is not None:
        pattern_text = (
            f"\n\nBreakout: {html.escape(pattern.candle_type)} "
            f"({'bullish' if pattern.is_bullish else 'bearish'})"
            f"\nStrength: {pattern.tier} ({pattern.score}/100)"
            f"\n{html.escape(pattern.recommendation)}"
        )

    message = f"""<b>🔔 New Zone Alert: {html.escape(symbol)} ({html.escape(timeframe)})</b>

Type: {header}
Price Range: {zone.bottom:.4f} - {zone.top:.4f}
Formed: {_fmt_time(zone.formation_time)}
Confirmed: {_fmt_time(zone.confirmation_time)}

Volume Ratio: {zone.volume_ratio:.2f}x
Volume Balance: {zone.balance_percent}%{breaker_text}{pattern_text}

{footer}"""

    return message


def send_telegram(message):
    """
    Send a message via Telegram bot.

    Args:
        message: Message text to send

    Returns:
        True if successful, False otherwise
    """
    if not config.ENABLE_TELEGRAM:
        return False

    bot_token = config.TELEGRAM_BOT_TOKEN
    chat_id = config.TELEGRAM_CHAT_ID

    if not bot_token or not chat_id:
        logger.warning("TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set. Skipping notification.")
        return False

    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    payload = {
        'chat_id': chat_id,
        'text': message,
        'parse_mode': 'HTML'
    }

    try:
        response = requests.post(url, json=payload, timeout=config.TELEGRAM_TIMEOUT_SEC)
    except requests.RequestException as e:
        logger.error(f"Error sending Telegram notification: {e}")
        return False

    if response.status_code == 200:
        logger.info("Telegram notification sent successfully")
        return True
    logger.error(f"Failed to send Telegram notification: {response.status_code} - {response.text}")
    return False


def send_email(subject, body):
    """
    Send an email alert over SMTP (STARTTLS).

    Args:
        subject: Email subject
        body: Plain text body; an HTML <pre> alternative is attached

    Returns:
        True if successful, False otherwise
    """
    if not config.ENABLE_EMAIL:
        return False

    if not config.EMAIL_RECIPIENT or not config.SMTP_USER or not config.SMTP_PASSWORD:
        logger.warning("EMAIL_RECIPIENT or SMTP credentials not set. Skipping email.")
        return False

    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = f"Zone Alerter <{config.SMTP_USER}>"
    msg['To'] = config.EMAIL_RECIPIENT
    msg.set_content(body)
    msg.add_alternative(f"<pre>{html.escape(body)}</pre>", subtype='html')

    try:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.SMTP_TIMEOUT_SEC) as server:
            server.starttls()
            server.login(config.SMTP_USER, config.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error sending email notification: {e}")
        return False

    logger.info(f"Email notification sent to {config.EMAIL_RECIPIENT}")
    return True


def notify(symbol, timeframe, zone: Zone):
    """
    Send a zone alert through every enabled channel.

    Returns:
        Dict of channel name -> delivery result
    """
    message = format_zone_message(symbol, timeframe, zone)
    return {
        'telegram': send_telegram(message),
        'email': send_email(format_zone_subject(symbol, timeframe, zone), _plain_text(message)),
    }


def _plain_text(message):
    """Telegram HTML message as plain text: tags removed, entities decoded."""
    return html.unescape(message.replace('<b>', '').replace('</b>', ''))
