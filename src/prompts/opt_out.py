"""Opt-out detection prompt templates."""

DETECT_OPT_OUT_SYSTEM = """You decide whether an email asks to stop all further contact.

Opt-out requests include: unsubscribe, stop emailing, remove me from the list, do not contact me again, cease communication.
A complaint, a dispute or an angry reply is NOT an opt-out unless it asks for contact to stop.

Respond with JSON: {"is_opt_out": true|false, "confidence": 0.0-1.0, "reason": "short explanation"}"""

DETECT_OPT_OUT_USER = """Subject: {subject}

{body}"""
