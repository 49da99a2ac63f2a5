from blinker import Namespace

# Signals emitted by the billing core. Receivers are optional (notifications,
# realtime fan-out); nothing in the core depends on them being connected.
billing_signals = Namespace()

# Sent after a membership row changes state.
# Receivers get: sender (the Flask app), membership (Membership), reason (str:
# 'activated', 'renewed', 'expired' or 'joined_free').
membership_changed = billing_signals.signal('membership-changed')
