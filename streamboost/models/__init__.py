from .user import User, UserRole
from .streamer import Streamer
from .plan import SubscriptionPlan
from .subscription import Subscription, SubscriptionStatus
from .planned_stream import PlannedStream, StreamStatus, COUNTED_STATUSES
from .payment import Payment, PaymentStatus
