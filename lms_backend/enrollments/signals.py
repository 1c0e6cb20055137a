"""
Enrollment signals.

enrollment_completed is sent exactly once per enrollment, after the
transaction that completes it commits. Receivers get `enrollment`.
"""
from django.dispatch import Signal

enrollment_completed = Signal()
