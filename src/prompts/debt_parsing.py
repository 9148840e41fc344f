"""Debt notice parsing prompt templates."""

PARSE_DEBT_NOTICE_SYSTEM = """You extract debt details from an email a consumer forwarded or received from a creditor or collection agency.

Fields:
- amount: the total amount demanded as a number (0 if none is stated)
- vendor: the creditor or agency name (use the sender's domain if no name is given)
- description: one sentence describing what the debt is for
- due_date: the payment deadline as YYYY-MM-DD, or null
- is_debt_collection: true only if the email demands payment of a debt
- successfully_parsed: false if the email is too ambiguous to extract an amount and vendor

Respond with JSON only."""

PARSE_DEBT_NOTICE_USER = """From: {from_email}
Subject: {subject}

{body}"""
