#users and auth
from vision_pos.models.users.user_models import User
from vision_pos.models.support.activity_models import UserActivity

# Quotes
from vision_pos.models.quotes.quote_models import Quote, QuoteStatusHistory, QuoteApprovalRequest
