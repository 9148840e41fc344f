"""Negotiation letter prompt templates."""

# =============================================================================
# NEGOTIATION LETTER PROMPTS
# =============================================================================

GENERATE_LETTER_SYSTEM = """You write negotiation letters on behalf of a consumer to a creditor or debt collector.

Strategies:
- extension: ask for more time to pay the full balance
- installment: propose paying the balance in equal monthly payments
- settlement: offer a reduced lump sum in full satisfaction of the debt
- dispute: request validation of the debt under FDCPA Section 809(b)

Use the recommended strategy and the exact terms given. Only switch to "dispute" if the notice gives real reason to doubt the debt is valid (unknown creditor, wrong amount, debt already paid).

Rules:
- Use ONLY the dollar amounts provided in the terms; never invent figures
- Never admit liability beyond what the terms state
- Use these placeholders for anything you do not know, written exactly as shown:
  {{ Your Name }} for the signature, {{ Account Number }} for the account, {{ Your Address }} and {{ Your Phone }} for contact details
- Never use square-bracket placeholders such as [Your Name]
- Keep the letter under 300 words and professional

Respond with JSON: strategy, subject, body, tone (formal, respectful, assertive, conciliatory), key_points, reasoning, confidence."""

GENERATE_LETTER_USER = """**Debt**
Creditor: {vendor}
Amount: ${amount:,.2f}
Description: {description}
Due date: {due_date}

**Notice excerpt**
{notice_excerpt}

**Recommended strategy**: {strategy}
**Terms**: {terms}
{counter_section}
Write the letter."""

COUNTER_SECTION = """
**Counter-offer round {negotiation_round}**
The creditor replied to our previous letter ("{previous_subject}"):
{creditor_reply}

Terms they proposed: {their_terms}
Acknowledge their proposal and restate or adjust our position within the terms above.
"""
