from .directory import Store, Rep, Admin
from .catalog import PrivateLabelProduct
from .clients import PrivateLabelClient, CLIENT_STATUSES, RECURRING_INTERVALS
from .labels import Label, LabelStageEntry, LabelImage, LABEL_STAGES, INITIAL_LABEL_STAGE, TERMINAL_LABEL_STAGE
from .orders import (
    ClientOrder,
    ClientOrderItem,
    ORDER_STATUSES,
    IN_PRODUCTION_STATUSES,
    DISCOUNT_TYPES,
    EMAIL_FLAGS,
    ORDER_NUMBER_PREFIX,
)
from .sequences import Counter
from .outbox import OutboxTask, OUTBOX_STATUSES

__all__ = [
    'Store', 'Rep', 'Admin',
    'PrivateLabelProduct',
    'PrivateLabelClient', 'CLIENT_STATUSES', 'RECURRING_INTERVALS',
    'Label', 'LabelStageEntry', 'LabelImage', 'LABEL_STAGES', 'INITIAL_LABEL_STAGE', 'TERMINAL_LABEL_STAGE',
    'ClientOrder', 'ClientOrderItem', 'ORDER_STATUSES', 'IN_PRODUCTION_STATUSES',
    'DISCOUNT_TYPES', 'EMAIL_FLAGS', 'ORDER_NUMBER_PREFIX',
    'Counter',
    'OutboxTask', 'OUTBOX_STATUSES',
]
