import logging

from sqlmodel import Session

from app.database import engine
from app.services.purchase_service import expire_stale_orders

logger = logging.getLogger(__name__)


def expire_unpaid_orders():
    with Session(engine) as session:
        count = expire_stale_orders(session)
    logger.info(f"Expired {count} unpaid purchase orders")
    return count


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    expire_unpaid_orders()
