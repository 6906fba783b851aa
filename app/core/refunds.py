"""Regras de elegibilidade para reembolso no cancelamento.

O prazo (notice period) sempre vem da configuração; nenhuma tela ou rota
deve fixar o valor no código. Todas as funções são totais: entrada
ausente ou inválida nunca levanta exceção.
"""
from datetime import datetime, timedelta
from typing import Any, NamedTuple, Optional

from app.core.time_utils import parse_timestamp, utc_now
from app.models.payment import TransactionStatus


class CancellationAssessment(NamedTuple):
    is_unpaid: bool
    is_refund_eligible: bool
    is_late: bool


def _notice_delta(notice_period_days) -> Optional[timedelta]:
    if notice_period_days is None or isinstance(notice_period_days, bool):
        return None
    try:
        return timedelta(days=float(notice_period_days))
    except (TypeError, ValueError, OverflowError):
        return None


def cancellation_deadline(event_start_time: Any, notice_period_days) -> Optional[datetime]:
    """Último instante (exclusivo) em que o cancelamento ainda dá reembolso."""
    start = parse_timestamp(event_start_time)
    delta = _notice_delta(notice_period_days)
    if start is None or delta is None:
        return None
    try:
        return start - delta
    except OverflowError:
        return None


def is_refund_eligible(
    event_start_time: Any,
    notice_period_days,
    now: Any = None,
) -> bool:
    """True se faltam *mais* de `notice_period_days` dias para a sessão.

    Aceita datetime, string ISO ou epoch em ms. Exatamente no limite não é
    elegível. Entrada ausente ou inválida -> False.
    """
    start = parse_timestamp(event_start_time)
    delta = _notice_delta(notice_period_days)
    now = utc_now() if now is None else parse_timestamp(now)
    if start is None or delta is None or now is None:
        return False

    return start - now > delta


def assess_cancellation(
    event_start_time: Any,
    transaction_status: Optional[str],
    notice_period_days,
    now: Any = None,
) -> CancellationAssessment:
    is_unpaid = transaction_status != TransactionStatus.COMPLETED.value
    in_time = is_refund_eligible(event_start_time, notice_period_days, now)

    return CancellationAssessment(
        is_unpaid=is_unpaid,
        is_refund_eligible=(not is_unpaid) and in_time,
        is_late=not in_time,
    )
