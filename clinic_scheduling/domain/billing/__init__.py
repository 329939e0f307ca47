"""
Billing Domain

Invoices paired 1:1 with appointments: derivation at booking time,
cancellation policy, and payment recording.
"""
