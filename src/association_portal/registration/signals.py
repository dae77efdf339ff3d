"""Custom signals for the registration app.

Both signals are sent after the surrounding database transaction commits.

Signals:
    registration_paid: Sent when an event registration transitions to PAID.
        Sender: The ``EventRegistration`` class.
        Kwargs:
            registration: The ``EventRegistration`` instance that was paid.
            payment: The ``Payment`` that settled it.
    membership_paid: Sent when a membership fee payment is confirmed.
        Sender: The ``Membership`` class.
        Kwargs:
            membership: The ``Membership`` instance that was activated.
            payment: The ``Payment`` that settled it.
"""

from django.dispatch import Signal

registration_paid = Signal()
membership_paid = Signal()
