# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Recipient resolution for uploaded alert files.

Turns the uploaded file name and the optional ``subject``, ``body`` and
``recipients`` request fields into a :class:`~alert_relay.models.DeliveryPlan`.
Resolution is a pure function of its arguments: the rule table is passed in
explicitly and is never modified.

Recipients come from, in order of precedence:

1. the ``recipients`` field, split on ``;``, ``,`` or line breaks;
2. the first rule, in declaration order, whose match token appears in the
   file name (plain case-sensitive substring test).

Line breaks in the subject are collapsed to spaces, since it becomes a mail
header.

Example:
    Resolving a report against the rule table::

        rules = (RecipientRule(match_token="Alerta PRL", addresses=("ops@example.com",)),)
        plan = resolve("Alerta PRL report.pdf", None, None, None, rules)
        plan.recipients  # ("ops@example.com",)
        plan.subject     # "Alerta PRL report"
"""

from __future__ import annotations

import os
import re
from collections.abc import Sequence

from .exceptions import NoRecipientsMatched
from .models import DeliveryPlan, RecipientRule

DEFAULT_BODY = """Hola,

Esto es una automatización de TSI.

Se adjunta el documento indicado en Asunto.

Un saludo."""

_SEPARATORS = re.compile(r"[;,\r\n]")
_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


def split_addresses(value: str | None) -> list[str]:
    """Split a ``;``/``,`` (or line) separated address list, dropping blank entries."""
    if not value:
        return []
    return [part.strip() for part in _SEPARATORS.split(value) if part.strip()]


def single_line(text: str) -> str:
    """Collapse line breaks to single spaces so the text is a valid header value."""
    return _LINE_BREAKS.sub(" ", text)


def default_subject(file_name: str) -> str:
    """Return the file name without directory and last extension."""
    stem, _ext = os.path.splitext(os.path.basename(file_name))
    return stem


def match_rule(file_name: str, rules: Sequence[RecipientRule]) -> RecipientRule | None:
    """Return the first declared rule whose token occurs in ``file_name``."""
    for rule in rules:
        if rule.match_token in file_name:
            return rule
    return None


def resolve(
    file_name: str,
    subject_override: str | None,
    body_override: str | None,
    recipients_override: str | None,
    rules: Sequence[RecipientRule],
) -> DeliveryPlan:
    """Build the delivery plan for an uploaded file.

    Args:
        file_name: Original client-supplied name of the uploaded file.
        subject_override: Subject to use instead of the file name.
        body_override: Body to use instead of :data:`DEFAULT_BODY`.
        recipients_override: Explicit ``;``/``,`` separated recipients. A value
            with no usable address counts as absent.
        rules: Rule table, scanned in declaration order.

    Returns:
        The resolved plan; ``attachment_name`` is ``file_name``.

    Raises:
        NoRecipientsMatched: No usable override and no rule matches.
    """
    subject = single_line(subject_override or default_subject(file_name))
    body = body_override or DEFAULT_BODY

    recipients = split_addresses(recipients_override)
    matched_token = None
    if not recipients:
        rule = match_rule(file_name, rules)
        if rule is None:
            raise NoRecipientsMatched()
        recipients = list(rule.addresses)
        matched_token = rule.match_token

    return DeliveryPlan(
        subject=subject,
        body=body,
        recipients=tuple(recipients),
        attachment_name=file_name,
        matched_token=matched_token,
    )
