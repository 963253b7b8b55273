# -*- coding: utf-8 -*-
"""
Уведомления в Telegram-чат зала.

Отправка «выстрелил и забыл»: ошибка доставки только логируется и никогда
не мешает основной операции (закрытие смены, бонус, подтверждение кассы).
"""
from __future__ import annotations

import html
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Mapping

import httpx
from flask import current_app

from ..money import fmt_money

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org"

# отправка вне запроса: медленный Bot API не задерживает ответ
_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="telegram")


def _m(v) -> str:
    return f"₱{fmt_money(v if v is not None else 0)}"


def format_message(action: str, payload: Mapping[str, Any]) -> str:
    """Текст сообщения по типу события; payload: плоский словарь."""
    p = {k: html.escape(str(v)) if isinstance(v, str) else v for k, v in payload.items()}
    name = p.get("employeeName") or "?"
    if action == "shift_start":
        return (f"🟢 <b>Смена началась</b>\n👤 {name}\n"
                f"🕐 {p.get('time', '')} ({p.get('shiftType', '')})")
    if action == "shift_end":
        diff = p.get("difference") or 0
        sign = "+" if float(diff) > 0 else ""
        lines = [
            "🔴 <b>Смена закрыта</b>",
            f"👤 {name}",
            f"⏱ {p.get('totalHours', 0)} ч",
            f"💵 Наличные: {_m(p.get('cashHandedOver'))}",
            f"📱 GCash: {_m(p.get('gcashHandedOver'))}",
            f"🎯 Ожидалось: {_m(p.get('expectedCash'))}",
            f"{'✅' if float(diff) == 0 else '⚠️'} Разница: {sign}{_m(diff)}",
        ]
        if p.get("bonuses"):
            lines.append(f"🎁 Бонусы: {_m(p.get('bonuses'))}")
        return "\n".join(lines)
    if action == "bonus_add":
        return (f"🎁 <b>Бонус</b>\n👤 {name}\n{p.get('bonusType', '')} × {p.get('quantity', 1)}"
                f" = {_m(p.get('amount'))}")
    if action == "cash_approved":
        return (f"💰 <b>Касса подтверждена</b>\n📅 {p.get('date', '')} {p.get('shift', '')}\n"
                f"Сдано: {_m(p.get('submitted'))} / ожидалось {_m(p.get('expected'))}")
    body = "\n".join(f"{k}: {v}" for k, v in p.items())
    return f"ℹ️ <b>{html.escape(action)}</b>\n{body}".strip()


class TelegramNotifier:
    def __init__(self, token: str, chat_id: str, timeout: float = 10.0,
                 transport: httpx.BaseTransport | None = None):
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def send(self, text: str) -> bool:
        if not self.configured:
            logger.debug("telegram не настроен, сообщение пропущено")
            return False
        url = f"{API_URL}/bot{self.token}/sendMessage"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.post(url, json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"})
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("telegram: не удалось отправить сообщение: %s", e)
            return False
        if not data.get("ok"):
            logger.warning("telegram API error: %s", data)
            return False
        return True


def notifier_from_config(transport: httpx.BaseTransport | None = None) -> TelegramNotifier:
    cfg = current_app.config
    return TelegramNotifier(
        cfg.get("TELEGRAM_BOT_TOKEN", ""),
        cfg.get("TELEGRAM_CHAT_ID", ""),
        timeout=float(cfg.get("HTTP_TIMEOUT", 10)),
        transport=transport,
    )


def _log_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("telegram: ошибка фоновой отправки: %r", exc)


def notify(action: str, payload: Mapping[str, Any]) -> Future | None:
    """Поставить сообщение в очередь отправки; None, если Telegram не настроен.

    Текст и настройки берутся здесь, в контексте приложения; сама отправка
    идёт в фоновом потоке.
    """
    notifier = notifier_from_config()
    if not notifier.configured:
        logger.debug("telegram не настроен, сообщение %s пропущено", action)
        return None
    future = _executor.submit(notifier.send, format_message(action, payload))
    future.add_done_callback(_log_failure)
    return future
