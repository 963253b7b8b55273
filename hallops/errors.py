# -*- coding: utf-8 -*-
"""
Ошибки предметной области.

Каждая ошибка несёт машинный код (уходит в JSON как "error") и HTTP-статус,
который использует обработчик в create_app().
"""
from __future__ import annotations


class HallOpsError(Exception):
    code = "error"
    status = 400

    def __init__(self, message: str = "", **extra):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.code, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(HallOpsError):
    code = "validation"
    status = 400


class NotFoundError(HallOpsError):
    code = "not_found"
    status = 404


class ConflictError(HallOpsError):
    code = "conflict"
    status = 409


class StateError(HallOpsError):
    code = "bad_state"
    status = 409


class SettlementError(HallOpsError):
    """Групповая операция не прошла; транзакция откатена, повторить целиком."""
    code = "settlement_failed"
    status = 500


class IntegrationError(HallOpsError):
    code = "integration_failed"
    status = 502
