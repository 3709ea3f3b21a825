# vision_pos/models/enums/quote_status.py
import enum


class QuoteStatus(str, enum.Enum):
    BUILDING = "BUILDING"      # being created or edited
    DRAFT = "DRAFT"            # saved, not presented yet
    PRESENTED = "PRESENTED"    # presented to customer
    SIGNED = "SIGNED"          # customer signed, awaiting fulfillment
    COMPLETED = "COMPLETED"    # fulfilled
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"        # auto-expired after inactivity
