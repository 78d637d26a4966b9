from app.models.user import User
from app.models.document import Document
from app.models.entitlement import Entitlement
from app.models.purchase_order import PurchaseOrder
from app.models.download import Download

# add ALL models here
